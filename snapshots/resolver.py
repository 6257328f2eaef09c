"""Find the most relevant stored snapshot for a tour and event."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from normalize.tours import Tour, same_event
from persistence.database import ActivityLog, NullLog
from persistence.store import CorruptSnapshot, SnapshotStore, StoreUnavailable
from snapshots.keys import newest_first, tour_prefix
from snapshots.models import Snapshot, event_name_of


@dataclass
class Resolution:
    """Snapshot chosen by the resolver.

    ``is_fallback`` is set when an event filter was given but nothing stored
    under the tour carries that event name, so the newest snapshot was
    returned instead.
    """

    snapshot: Snapshot
    key: str
    is_fallback: bool = False


class TournamentResolver:
    def __init__(self, store: SnapshotStore, activity: Optional[ActivityLog] = None) -> None:
        self._store = store
        self._log = activity or NullLog()

    def resolve(self, tour: Tour | str, event_name: Optional[str] = None) -> Optional[Resolution]:
        prefix = tour_prefix(tour)
        try:
            keys = self._store.list(prefix)
        except StoreUnavailable as exc:
            self._log.log(
                "warning",
                "Snapshot listing failed",
                {"store": self._store.name, "prefix": prefix, "error": str(exc)},
            )
            return None
        if not keys:
            return None

        ordered = newest_first(keys)
        self._log.log(
            "info",
            "Snapshots listed",
            {"store": self._store.name, "prefix": prefix, "count": len(ordered), "newest": ordered[0]},
        )

        if not event_name:
            for key in ordered:
                record = self._read(key)
                if record is not None:
                    return Resolution(Snapshot.from_record(key, record), key)
            return None

        readable: List[Tuple[str, dict]] = []
        for key in ordered:
            record = self._read(key)
            if record is None:
                continue
            if same_event(event_name_of(record), event_name):
                return Resolution(Snapshot.from_record(key, record), key)
            readable.append((key, record))

        if not readable:
            return None
        key, record = readable[0]
        self._log.log(
            "warning",
            "No snapshot for event, using newest",
            {"store": self._store.name, "event": event_name, "key": key},
        )
        return Resolution(Snapshot.from_record(key, record), key, is_fallback=True)

    def _read(self, key: str) -> Optional[dict]:
        try:
            return self._store.get(key)
        except (StoreUnavailable, CorruptSnapshot) as exc:
            self._log.log(
                "warning",
                "Snapshot unreadable",
                {"store": self._store.name, "key": key, "error": str(exc)},
            )
            return None
