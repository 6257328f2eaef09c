"""Reuse policy for cached artifacts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional

from normalize.tours import same_event
from snapshots.models import event_name_of, record_timestamp, to_millis

PLAYER_DATA_MAX_AGE = timedelta(hours=12)
WEATHER_MAX_AGE = timedelta(hours=3)
IN_PROGRESS_MAX_AGE = timedelta(minutes=15)


@dataclass(frozen=True)
class CacheDecision:
    valid: bool
    reason: str

    def __bool__(self) -> bool:
        return self.valid


class CacheValidator:
    """Accepts a cached record only while it is young enough and for the same event.

    The age budget comes from the caller; a record is stale once its age
    reaches ``max_age`` (the comparison is strict).
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def evaluate(
        self,
        record: Optional[Mapping[str, Any]],
        current_event_name: Optional[str] = None,
        max_age: timedelta = PLAYER_DATA_MAX_AGE,
    ) -> CacheDecision:
        if not record:
            return CacheDecision(False, "missing")
        timestamp = record_timestamp(record)
        if timestamp is None:
            return CacheDecision(False, "no timestamp")

        age_ms = to_millis(self._clock()) - timestamp
        if age_ms >= max_age / timedelta(milliseconds=1):
            return CacheDecision(False, f"expired ({age_ms / 3_600_000:.1f}h old)")

        if current_event_name:
            cached_name = event_name_of(record)
            if cached_name and not same_event(cached_name, current_event_name):
                return CacheDecision(
                    False, f"event mismatch: cached {cached_name!r}, current {current_event_name!r}"
                )
        return CacheDecision(True, "fresh")

    def is_valid(
        self,
        record: Optional[Mapping[str, Any]],
        current_event_name: Optional[str] = None,
        max_age: timedelta = PLAYER_DATA_MAX_AGE,
    ) -> bool:
        return self.evaluate(record, current_event_name, max_age).valid
