import sqlite3
from decimal import Decimal
from datetime import datetime, timezone

import pytest

from persistence.database import Database
from persistence.store import CorruptSnapshot, StoreUnavailable


def test_log_serialization_handles_decimal(tmp_path):
    db = Database(tmp_path / "test.db")
    db.log("info", "decimal test", {"value": Decimal("1.23"), "time": datetime.now(timezone.utc)})

    records = db.fetch_logs()
    assert records
    context = records[-1].context
    assert isinstance(context, dict)
    assert context["value"] == 1.23


def test_fetch_logs_since_id(tmp_path):
    db = Database(tmp_path / "test.db")
    first = db.log("info", "one")
    db.log("warning", "two", {"source": "datagolf"})

    records = db.fetch_logs(since_id=first)
    assert [record.message for record in records] == ["two"]
    assert records[0].context == {"source": "datagolf"}


def test_snapshot_round_trip(tmp_path):
    db = Database(tmp_path / "snapshots.db")
    store = db.store("odds")
    payload = {
        "tour": "pga",
        "tournament": {"name": "The Memorial Tournament"},
        "timestamp": 1_717_000_000_000,
        "payload": {"odds": [{"player": "Scottie Scheffler", "odds": 425}]},
    }
    store.set("pga-the-memorial-tournament-2024-06-05-0800", payload)

    restored = store.get("pga-the-memorial-tournament-2024-06-05-0800")
    assert restored == payload
    assert store.get("pga-missing") is None


def test_set_replaces_existing_value(tmp_path):
    store = Database(tmp_path / "snapshots.db").store("odds")
    store.set("pga-a", {"version": 1})
    store.set("pga-a", {"version": 2})

    assert store.get("pga-a") == {"version": 2}
    assert store.list("pga-") == ["pga-a"]


def test_namespaces_are_isolated(tmp_path):
    db = Database(tmp_path / "snapshots.db")
    db.store("odds").set("pga-a", {"n": 1})
    db.store("weather-cache").set("pga-a", {"n": 2})

    assert db.store("odds").get("pga-a") == {"n": 1}
    assert db.store("weather-cache").get("pga-a") == {"n": 2}
    assert db.snapshot_counts() == {"odds": 1, "weather-cache": 1}


def test_list_prefix_is_case_sensitive_and_literal(tmp_path):
    store = Database(tmp_path / "snapshots.db").store("odds")
    for key in ("pga-a", "PGA-b", "pga_c", "dp-d"):
        store.set(key, {})

    assert sorted(store.list("pga-")) == ["pga-a"]
    assert sorted(store.list("pga_")) == ["pga_c"]
    assert sorted(store.list()) == ["PGA-b", "dp-d", "pga-a", "pga_c"]


def test_delete_removes_only_the_key(tmp_path):
    store = Database(tmp_path / "snapshots.db").store("odds")
    store.set("pga-a", {})
    store.set("pga-b", {})

    store.delete("pga-a")
    store.delete("pga-missing")

    assert store.list("pga-") == ["pga-b"]


def test_corrupt_row_raises(tmp_path):
    db = Database(tmp_path / "snapshots.db")
    with sqlite3.connect(db.path) as conn:
        conn.execute(
            "INSERT INTO snapshots (namespace, key, data, written_at) VALUES (?, ?, ?, ?)",
            ("odds", "pga-bad", "{oops", "2024-01-01T00:00:00"),
        )

    with pytest.raises(CorruptSnapshot):
        db.store("odds").get("pga-bad")


def test_connection_failure_is_store_unavailable(tmp_path, monkeypatch):
    store = Database(tmp_path / "snapshots.db").store("odds")

    def refuse(*args, **kwargs):
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr(sqlite3, "connect", refuse)

    with pytest.raises(StoreUnavailable):
        store.get("pga-a")
    with pytest.raises(StoreUnavailable):
        store.list("pga-")
    with pytest.raises(StoreUnavailable):
        store.set("pga-a", {})


def test_store_requires_namespace(tmp_path):
    with pytest.raises(ValueError):
        Database(tmp_path / "snapshots.db").store("")
