"""Application configuration.

Values are read once, at startup, and handed to constructors; no component
looks at the environment on its own.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import List, Mapping, Optional

from normalize.names import SurnameStrategy, last_sorted_token, surname_from_raw
from odds_engine.consensus import PriceRank, payout_price_rank, signed_price_rank
from snapshots.validation import IN_PROGRESS_MAX_AGE, PLAYER_DATA_MAX_AGE, WEATHER_MAX_AGE


class SurnameMode(str, Enum):
    RAW = "raw"
    SORTED_KEY = "sorted-key"


class PriceRanking(str, Enum):
    SIGNED = "signed"
    PAYOUT = "payout"


@dataclass
class AppConfig:
    api_key: str = ""
    database_path: Path = Path("fieldsync.db")
    request_timeout: float = 15.0
    regions: List[str] = field(default_factory=list)
    player_data_max_age: timedelta = PLAYER_DATA_MAX_AGE
    weather_max_age: timedelta = WEATHER_MAX_AGE
    in_progress_max_age: timedelta = IN_PROGRESS_MAX_AGE
    odds_retention: timedelta = timedelta(days=7)
    surname_mode: SurnameMode = SurnameMode.RAW
    price_ranking: PriceRanking = PriceRanking.SIGNED

    @property
    def surname_strategy(self) -> SurnameStrategy:
        if self.surname_mode == SurnameMode.SORTED_KEY:
            return last_sorted_token
        return surname_from_raw

    @property
    def price_rank(self) -> PriceRank:
        if self.price_ranking == PriceRanking.PAYOUT:
            return payout_price_rank
        return signed_price_rank

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        env = os.environ if environ is None else environ
        config = cls(api_key=env.get("DATAGOLF_API_KEY", ""))
        if env.get("FIELDSYNC_DB_PATH"):
            config.database_path = Path(env["FIELDSYNC_DB_PATH"])
        if env.get("FIELDSYNC_REQUEST_TIMEOUT"):
            try:
                config.request_timeout = float(env["FIELDSYNC_REQUEST_TIMEOUT"])
            except ValueError as exc:
                raise ValueError(
                    f"FIELDSYNC_REQUEST_TIMEOUT must be a number, got {env['FIELDSYNC_REQUEST_TIMEOUT']!r}"
                ) from exc
        if env.get("FIELDSYNC_REGIONS"):
            config.regions = [r.strip() for r in env["FIELDSYNC_REGIONS"].split(",") if r.strip()]
        if env.get("FIELDSYNC_SURNAME_MODE"):
            config.surname_mode = SurnameMode(env["FIELDSYNC_SURNAME_MODE"])
        if env.get("FIELDSYNC_PRICE_RANKING"):
            config.price_ranking = PriceRanking(env["FIELDSYNC_PRICE_RANKING"])
        return config
