import pytest

from persistence.database import Database
from persistence.store import MemorySnapshotStore, StoreUnavailable
from snapshots.resolver import TournamentResolver


def _put(store, key, event_name, **payload):
    store.set(
        key,
        {
            "tour": key.split("-", 1)[0],
            "tournament": {"name": event_name},
            "timestamp": 1_700_000_000_000,
            "payload": payload,
        },
    )


class ListFailsStore(MemorySnapshotStore):
    def list(self, prefix=""):
        raise StoreUnavailable("listing down")


class GetFailsStore(MemorySnapshotStore):
    def __init__(self, failing_key):
        super().__init__()
        self.failing_key = failing_key

    def get(self, key):
        if key == self.failing_key:
            raise StoreUnavailable("read down")
        return super().get(key)


@pytest.fixture
def store():
    store = MemorySnapshotStore("predictions")
    _put(store, "pga-event-2024-01-01-0800", "The Event", picks=["a"])
    _put(store, "pga-event-2024-01-03-2000", "The Event", picks=["b"])
    return store


def test_no_filter_returns_newest(store):
    result = TournamentResolver(store).resolve("pga")

    assert result is not None
    assert result.key == "pga-event-2024-01-03-2000"
    assert result.is_fallback is False
    assert result.snapshot.payload == {"picks": ["b"]}
    assert result.snapshot.event_name == "The Event"


def test_filter_returns_newest_exact_event_match(store):
    _put(store, "pga-other-open-2024-01-05-0800", "Other Open")

    result = TournamentResolver(store).resolve("pga", "  the event ")

    assert result.key == "pga-event-2024-01-03-2000"
    assert result.is_fallback is False


def test_filter_without_match_falls_back_to_newest(store):
    result = TournamentResolver(store).resolve("pga", "Unknown Classic")

    assert result.key == "pga-event-2024-01-03-2000"
    assert result.is_fallback is True


def test_event_names_are_not_fuzzy_matched(store):
    result = TournamentResolver(store).resolve("pga", "Event")

    assert result.is_fallback is True


def test_corrupt_entries_are_skipped(store):
    store.put_raw("pga-event-2024-01-04-0800", "{not json")

    result = TournamentResolver(store).resolve("pga")

    assert result.key == "pga-event-2024-01-03-2000"


def test_unreadable_entries_are_skipped():
    store = GetFailsStore("pga-event-2024-01-03-2000")
    _put(store, "pga-event-2024-01-01-0800", "The Event")
    _put(store, "pga-event-2024-01-03-2000", "The Event")

    assert TournamentResolver(store).resolve("pga").key == "pga-event-2024-01-01-0800"
    assert TournamentResolver(store).resolve("pga", "Nope").key == "pga-event-2024-01-01-0800"


def test_undated_keys_sort_last(store):
    _put(store, "pga-event", "The Event")

    assert TournamentResolver(store).resolve("pga").key == "pga-event-2024-01-03-2000"


def test_other_tours_are_ignored(store):
    _put(store, "dp-event-2025-01-01-0800", "The Event")

    assert TournamentResolver(store).resolve("pga").key == "pga-event-2024-01-03-2000"
    assert TournamentResolver(store).resolve("dp").key == "dp-event-2025-01-01-0800"


def test_empty_store_resolves_to_nothing():
    assert TournamentResolver(MemorySnapshotStore()).resolve("pga") is None
    assert TournamentResolver(MemorySnapshotStore()).resolve("pga", "The Event") is None


def test_unavailable_store_resolves_to_nothing(tmp_path):
    db = Database(tmp_path / "resolver.db")
    store = ListFailsStore()
    _put(store, "pga-event-2024-01-01-0800", "The Event")

    assert TournamentResolver(store, db).resolve("pga") is None
    assert any(record.message == "Snapshot listing failed" for record in db.fetch_logs())


def test_legacy_records_without_payload_wrapper():
    store = MemorySnapshotStore()
    store.set(
        "pga-memorial-2023-05-31-0900",
        {"tournamentName": "Memorial", "predictions": [{"player": "Scottie Scheffler"}]},
    )

    result = TournamentResolver(store).resolve("pga", "memorial")

    assert result.is_fallback is False
    assert result.snapshot.event_name == "Memorial"
    assert result.snapshot.payload == {"predictions": [{"player": "Scottie Scheffler"}]}


def test_resolves_from_sqlite_store(tmp_path):
    db = Database(tmp_path / "snapshots.db")
    store = db.store("matchups")
    _put(store, "pga-event-2024-01-01-0800", "The Event")
    _put(store, "pga-event-2024-01-03-2000", "The Event")

    result = TournamentResolver(store, db).resolve("pga")

    assert result.key == "pga-event-2024-01-03-2000"
