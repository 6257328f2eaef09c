from datetime import timedelta
from pathlib import Path

import pytest

from controller.config import AppConfig, PriceRanking, SurnameMode
from controller.reconcile import ReconcileController
from normalize.names import last_sorted_token, surname_from_raw
from odds_engine.consensus import payout_price_rank, signed_price_rank


def test_defaults():
    config = AppConfig.from_env({})

    assert config.api_key == ""
    assert config.database_path == Path("fieldsync.db")
    assert config.request_timeout == 15.0
    assert config.regions == []
    assert config.player_data_max_age == timedelta(hours=12)
    assert config.weather_max_age == timedelta(hours=3)
    assert config.in_progress_max_age == timedelta(minutes=15)
    assert config.odds_retention == timedelta(days=7)
    assert config.surname_strategy is surname_from_raw
    assert config.price_rank is signed_price_rank


def test_environment_overrides(tmp_path):
    config = AppConfig.from_env(
        {
            "DATAGOLF_API_KEY": "abc",
            "FIELDSYNC_DB_PATH": str(tmp_path / "cache.db"),
            "FIELDSYNC_REQUEST_TIMEOUT": "4.5",
            "FIELDSYNC_REGIONS": "us, uk,,",
            "FIELDSYNC_SURNAME_MODE": "sorted-key",
            "FIELDSYNC_PRICE_RANKING": "payout",
        }
    )

    assert config.api_key == "abc"
    assert config.database_path == tmp_path / "cache.db"
    assert config.request_timeout == 4.5
    assert config.regions == ["us", "uk"]
    assert config.surname_mode is SurnameMode.SORTED_KEY
    assert config.surname_strategy is last_sorted_token
    assert config.price_ranking is PriceRanking.PAYOUT
    assert config.price_rank is payout_price_rank


def test_bad_timeout_is_rejected():
    with pytest.raises(ValueError):
        AppConfig.from_env({"FIELDSYNC_REQUEST_TIMEOUT": "soon"})


def test_unknown_modes_are_rejected():
    with pytest.raises(ValueError):
        AppConfig.from_env({"FIELDSYNC_SURNAME_MODE": "first"})
    with pytest.raises(ValueError):
        AppConfig.from_env({"FIELDSYNC_PRICE_RANKING": "implied"})


def test_controller_from_config_requires_api_key(tmp_path):
    with pytest.raises(ValueError):
        ReconcileController.from_config(AppConfig(database_path=tmp_path / "x.db"))


def test_controller_from_config_wires_feeds(tmp_path):
    class Session:
        def get(self, url, params=None, timeout=None, headers=None):
            return Response()

    class Response:
        status_code = 200
        text = ""

        def json(self):
            return {"odds": [{"player_name": "Scheffler, Scottie", "draftkings": "+425", "fanduel": "+450"}]}

    config = AppConfig(api_key="abc", database_path=tmp_path / "x.db", regions=["us"])
    controller = ReconcileController.from_config(config, session=Session())

    board = controller.consensus_board("pga", "The Memorial Tournament")

    assert [price.contestant for price in board.prices] == ["Scottie Scheffler"]
    assert board.prices[0].average_price == 438
    assert board.source == "datagolf"
