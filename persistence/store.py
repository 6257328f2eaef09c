"""Key/value surface used to persist snapshots."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class StoreUnavailable(RuntimeError):
    """Raised when the backing storage cannot be reached.

    A missing key is not an error: ``get`` returns ``None`` for it.
    """


class CorruptSnapshot(ValueError):
    """Raised when a stored value exists but cannot be decoded."""


class SnapshotStore(ABC):
    """Last-writer-wins key/value store with prefix listing.

    Values are JSON-compatible mappings.  ``list`` makes no ordering
    promise; consumers sort the keys themselves.
    """

    name: str = "snapshots"

    @abstractmethod
    def set(self, key: str, value: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def list(self, prefix: str = "") -> List[str]:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemorySnapshotStore(SnapshotStore):
    """In-process store; values are kept encoded so reads return fresh copies."""

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self._data: Dict[str, str] = {}

    def set(self, key: str, value: Dict[str, Any]) -> None:
        self._data[key] = encode_value(value)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return decode_value(key, raw)

    def list(self, prefix: str = "") -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def put_raw(self, key: str, raw: str) -> None:
        """Store an already-encoded value verbatim."""

        self._data[key] = raw


def encode_value(value: Dict[str, Any]) -> str:
    return json.dumps(value, default=json_default, sort_keys=True)


def decode_value(key: str, raw: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise CorruptSnapshot(f"Snapshot {key!r} is not valid JSON") from exc
    if value is None:
        return None
    if not isinstance(value, dict):
        raise CorruptSnapshot(f"Snapshot {key!r} is not an object")
    return value


def json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
