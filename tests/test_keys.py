from datetime import datetime, timedelta, timezone

import pytest

from normalize.tours import Tour, clean_event_name, event_slug, same_event, tour_for_event
from snapshots.keys import (
    key_time,
    latest_key,
    newest_first,
    player_data_key,
    snapshot_key,
    weather_key,
)


def test_snapshot_key_layout():
    key = snapshot_key(
        "pga", "The Memorial Tournament presented by Workday", datetime(2024, 6, 5, 8, 3)
    )

    assert key == "pga-the-memorial-tournament-presented-by-workday-2024-06-05-0803"


def test_snapshot_key_converts_aware_times_to_utc():
    at = datetime(2024, 1, 1, 20, 0, tzinfo=timezone(timedelta(hours=-5)))

    assert snapshot_key(Tour.PRIMARY, "Sony Open", at) == "pga-sony-open-2024-01-02-0100"


def test_event_slug_collapses_and_trims():
    assert event_slug("  --AT&T Pebble Beach Pro-Am!! ") == "at-t-pebble-beach-pro-am"
    assert event_slug("") == ""


def test_pointer_and_cache_keys():
    assert latest_key(Tour.SECONDARY, "Dubai Desert Classic") == "dp-dubai-desert-classic"
    assert player_data_key("pga") == "player-data-pga"
    assert player_data_key(Tour.PRIMARY, "The Players") == "player-data-pga-the-players"
    assert weather_key("pga", "") == "weather-current-pga-unknown"


def test_newest_first_orders_by_suffix_and_puts_undated_last():
    keys = ["pga-a-2024-01-01-0800", "pga-b", "pga-c-2024-01-03-2000", "pga-d-2024-01-03-0900"]

    assert newest_first(keys) == [
        "pga-c-2024-01-03-2000",
        "pga-d-2024-01-03-0900",
        "pga-a-2024-01-01-0800",
        "pga-b",
    ]


def test_newest_first_ignores_event_name_when_ordering():
    keys = ["pga-zurich-classic-2024-01-01-0800", "pga-american-express-2024-02-01-0800"]

    assert newest_first(keys)[0] == "pga-american-express-2024-02-01-0800"


def test_key_time():
    assert key_time("pga-x-2024-01-03-2000") == datetime(2024, 1, 3, 20, 0, tzinfo=timezone.utc)
    assert key_time("pga-x-2024-02-30-0800") is None
    assert key_time("pga-x") is None


@pytest.mark.parametrize(
    "name,tour",
    [
        ("Dubai Desert Classic", Tour.SECONDARY),
        ("BMW PGA Championship", Tour.SECONDARY),
        ("LIV Golf Miami", Tour.ALTERNATE),
        ("Korn Ferry Tour Championship", Tour.REGIONAL),
        ("the Memorial Tournament", Tour.PRIMARY),
        ("Olivia Invitational", Tour.PRIMARY),
    ],
)
def test_tour_for_event(name, tour):
    assert tour_for_event(name) is tour


def test_tour_parse_and_feed_codes():
    assert Tour.parse("euro") is Tour.SECONDARY
    assert Tour.parse(" PGA ") is Tour.PRIMARY
    assert Tour.parse(Tour.REGIONAL) is Tour.REGIONAL
    assert Tour.SECONDARY.feed_code == "euro"
    assert Tour.PRIMARY.feed_code == "pga"
    with pytest.raises(ValueError):
        Tour.parse("lpga")


def test_same_event_is_strict_but_case_insensitive():
    assert same_event("  The Masters ", "the masters")
    assert not same_event("The Masters", "Masters")
    assert not same_event(None, "The Masters")


def test_clean_event_name():
    assert clean_event_name("The Memorial Tournament presented by Workday") == "The Memorial Tournament"
    assert clean_event_name("Sony Open (Hawaii)") == "Sony Open"
