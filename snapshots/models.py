"""Snapshot records as they are written to and read from the store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from normalize.tours import Tour
from snapshots.keys import snapshot_key, tour_value

_METADATA_FIELDS = ("tour", "tournament", "tournamentName", "eventName", "timestamp", "generatedAt")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Snapshot:
    """An immutable, timestamped artifact for one event."""

    key: str
    tour: str
    event_name: str
    generated_at: int
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        tour: Tour | str,
        event_name: str,
        payload: Mapping[str, Any],
        at: Optional[datetime] = None,
    ) -> "Snapshot":
        at = at or datetime.now(timezone.utc)
        return cls(
            key=snapshot_key(tour, event_name, at),
            tour=tour_value(tour),
            event_name=event_name,
            generated_at=to_millis(at),
            payload=dict(payload),
        )

    @property
    def generated_at_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.generated_at / 1000, tz=timezone.utc)

    def to_record(self) -> Dict[str, Any]:
        return {
            "tour": self.tour,
            "tournament": {"name": self.event_name},
            "timestamp": self.generated_at,
            "generatedAt": self.generated_at_datetime.isoformat(),
            "payload": self.payload,
        }

    @classmethod
    def from_record(cls, key: str, record: Mapping[str, Any]) -> "Snapshot":
        if "payload" in record and isinstance(record["payload"], dict):
            payload = dict(record["payload"])
        else:
            # older records kept the artifact fields at the top level
            payload = {k: v for k, v in record.items() if k not in _METADATA_FIELDS}
        timestamp = record_timestamp(record)
        return cls(
            key=key,
            tour=str(record.get("tour") or key.split("-", 1)[0]),
            event_name=event_name_of(record) or "",
            generated_at=timestamp if timestamp is not None else 0,
            payload=payload,
        )


def event_name_of(record: Mapping[str, Any]) -> Optional[str]:
    """Event name stored on a record, in any of the layouts it has been saved with."""

    tournament = record.get("tournament")
    if isinstance(tournament, Mapping) and tournament.get("name"):
        return str(tournament["name"])
    if isinstance(tournament, str) and tournament:
        return tournament
    for field_name in ("tournamentName", "eventName"):
        value = record.get(field_name)
        if value:
            return str(value)
    return None


def record_timestamp(record: Mapping[str, Any]) -> Optional[int]:
    """Epoch milliseconds stored on a record, if any."""

    value = record.get("timestamp")
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return to_millis(parsed)
    return None


def to_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)
