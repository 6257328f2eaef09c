"""Snapshot key layout.

Keys look like ``<tour>-<event-slug>-<YYYY>-<MM>-<DD>-<HHMM>``.  Historical
data depends on this exact layout: the suffix is fixed-width and
zero-padded, so comparing it as a string orders keys chronologically.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from normalize.tours import Tour, event_slug

TIMESTAMP_RE = re.compile(r"(\d{4}-\d{2}-\d{2}-\d{4})$")
UNDATED_SUFFIX = "0000-00-00-0000"
KEY_TIME_FORMAT = "%Y-%m-%d-%H%M"


def tour_value(tour: Tour | str) -> str:
    return tour.value if isinstance(tour, Tour) else str(tour)


def tour_prefix(tour: Tour | str) -> str:
    return f"{tour_value(tour)}-"


def snapshot_key(tour: Tour | str, event_name: str, at: datetime) -> str:
    if at.tzinfo is not None:
        at = at.astimezone(timezone.utc)
    stamp = (
        f"{at.year:04d}-{at.month:02d}-{at.day:02d}-{at.hour:02d}{at.minute:02d}"
    )
    return f"{tour_value(tour)}-{event_slug(event_name)}-{stamp}"


def latest_key(tour: Tour | str, event_name: str) -> str:
    return f"{tour_value(tour)}-{event_slug(event_name)}"


def player_data_key(tour: Tour | str, event_name: Optional[str] = None) -> str:
    if not event_name:
        return f"player-data-{tour_value(tour)}"
    return f"player-data-{tour_value(tour)}-{event_slug(event_name)}"


def weather_key(tour: Tour | str, event_name: str) -> str:
    return f"weather-current-{tour_value(tour)}-{event_slug(event_name) or 'unknown'}"


def key_suffix(key: str) -> Optional[str]:
    match = TIMESTAMP_RE.search(key)
    return match.group(1) if match else None


def key_time(key: str) -> Optional[datetime]:
    """Parse the key's suffix as a UTC datetime, or ``None`` if it has none."""

    suffix = key_suffix(key)
    if suffix is None:
        return None
    try:
        return datetime.strptime(suffix, KEY_TIME_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def newest_first(keys: Iterable[str]) -> List[str]:
    """Sort keys by their date-time suffix, newest first.

    Keys without a suffix sort last.  Equal suffixes keep their input order.
    """

    return sorted(keys, key=lambda key: key_suffix(key) or UNDATED_SUFFIX, reverse=True)
