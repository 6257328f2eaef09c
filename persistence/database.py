"""SQLite persistence layer for fieldsync."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol

from persistence.store import SnapshotStore, StoreUnavailable, decode_value, encode_value, json_default


SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshots (
    namespace TEXT NOT NULL,
    key TEXT NOT NULL,
    data TEXT NOT NULL,
    written_at TEXT NOT NULL,
    PRIMARY KEY (namespace, key)
);

CREATE TABLE IF NOT EXISTS logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL,
    level TEXT NOT NULL,
    message TEXT NOT NULL,
    context TEXT
);
"""


class ActivityLog(Protocol):
    def log(self, level: str, message: str, context: Optional[dict] = None) -> Any:
        ...


class NullLog:
    """Discards log lines; used when a component is built without a database."""

    def log(self, level: str, message: str, context: Optional[dict] = None) -> None:
        return None


@dataclass
class LogRecord:
    id: int
    created_at: datetime
    level: str
    message: str
    context: Optional[dict]


class Database:
    def __init__(self, path: str | Path = "fieldsync.db") -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        try:
            yield conn
        finally:
            conn.commit()
            conn.close()

    def store(self, namespace: str) -> "SqliteSnapshotStore":
        """Return the snapshot store for one artifact family."""

        if not namespace:
            raise ValueError("A store namespace must be supplied")
        return SqliteSnapshotStore(self, namespace)

    def log(self, level: str, message: str, context: Optional[dict] = None) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO logs (created_at, level, message, context) VALUES (?, ?, ?, ?)",
                (
                    _utcnow().isoformat(),
                    level,
                    message,
                    json.dumps(context, default=json_default) if context else None,
                ),
            )
            return int(cur.lastrowid)

    def fetch_logs(self, since_id: Optional[int] = None, limit: int = 200) -> List[LogRecord]:
        query = "SELECT id, created_at, level, message, context FROM logs"
        params: tuple
        if since_id is not None:
            query += " WHERE id > ? ORDER BY id ASC LIMIT ?"
            params = (since_id, limit)
        else:
            query += " ORDER BY id ASC LIMIT ?"
            params = (limit,)

        with self._connect() as conn:
            cur = conn.execute(query, params)
            records: List[LogRecord] = []
            for log_id, created_at, level, message, context in cur.fetchall():
                parsed_context = json.loads(context) if context else None
                records.append(
                    LogRecord(
                        id=int(log_id),
                        created_at=datetime.fromisoformat(created_at),
                        level=level,
                        message=message,
                        context=parsed_context,
                    )
                )
            return records

    def snapshot_counts(self) -> Dict[str, int]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT namespace, COUNT(*) FROM snapshots GROUP BY namespace"
            ).fetchall()
        return {namespace: int(count) for namespace, count in rows}


class SqliteSnapshotStore(SnapshotStore):
    """Snapshot store backed by one namespace of the ``snapshots`` table."""

    def __init__(self, database: Database, namespace: str) -> None:
        self._db = database
        self.name = namespace

    def set(self, key: str, value: Dict[str, Any]) -> None:
        encoded = encode_value(value)
        with self._guard("set", key) as conn:
            conn.execute(
                "REPLACE INTO snapshots (namespace, key, data, written_at) VALUES (?, ?, ?, ?)",
                (self.name, key, encoded, _utcnow().isoformat()),
            )

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._guard("get", key) as conn:
            row = conn.execute(
                "SELECT data FROM snapshots WHERE namespace = ? AND key = ?",
                (self.name, key),
            ).fetchone()
        if not row:
            return None
        return decode_value(key, row[0])

    def list(self, prefix: str = "") -> List[str]:
        with self._guard("list", prefix) as conn:
            rows = conn.execute(
                "SELECT key FROM snapshots WHERE namespace = ? AND substr(key, 1, ?) = ?",
                (self.name, len(prefix), prefix),
            ).fetchall()
        return [row[0] for row in rows]

    def delete(self, key: str) -> None:
        with self._guard("delete", key) as conn:
            conn.execute(
                "DELETE FROM snapshots WHERE namespace = ? AND key = ?",
                (self.name, key),
            )

    @contextmanager
    def _guard(self, operation: str, key: str) -> Iterator[sqlite3.Connection]:
        try:
            with self._db._connect() as conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreUnavailable(
                f"Snapshot store {self.name!r} failed to {operation} {key!r}: {exc}"
            ) from exc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
