"""DataGolf feed client.

A thin wrapper around the DataGolf JSON feeds used by fieldsync.  HTTP
handling and failure classification live here so the reconciliation code
only deals with parsed records or a ``FeedError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, MutableMapping, Optional

import requests


_FINISH_FIELDS = ("event_stats", "players", "results")


class FeedError(RuntimeError):
    """A feed produced no usable data."""

    kind = "error"


class FeedTimeout(FeedError):
    """The feed did not answer within the request timeout."""

    kind = "timeout"


class FeedHttpError(FeedError):
    """The feed answered with a non-success status or the connection failed."""

    kind = "http"

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedPayload(FeedError):
    """The feed answered, but not with the shape we expect."""

    kind = "malformed"


@dataclass
class FeedResponse:
    """Container for a feed payload and when it was received."""

    data: Any
    received_at: datetime
    last_updated: Optional[str] = None


class DataGolfClient:
    """Simple client that talks to the DataGolf feeds."""

    BASE_URL = "https://feeds.datagolf.com"
    USER_AGENT = "fieldsync/1.0"

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
    ) -> None:
        if not api_key:
            raise ValueError("A DataGolf API key must be supplied")
        self._api_key = api_key
        self._session = session or requests.Session()
        self._timeout = timeout

    def get_outrights(self, tour: str, market: str = "win") -> FeedResponse:
        """Fetch outright prices from every book DataGolf tracks.

        ``tour`` is the DataGolf tour code (``pga``, ``euro``, ``kft``, ``liv``).
        """

        params: MutableMapping[str, str] = {
            "tour": tour,
            "market": market,
            "odds_format": "american",
            "file_format": "json",
            "key": self._api_key,
        }
        response = self._get("/betting-tools/outrights", params)
        if not isinstance(response.data, dict) or not isinstance(response.data.get("odds"), list):
            raise MalformedPayload("Outrights payload has no 'odds' list")
        response.last_updated = response.data.get("last_updated")
        return response

    def get_skill_ratings(self) -> FeedResponse:
        """Fetch strokes-gained skill ratings for the ranked player pool."""

        params: MutableMapping[str, str] = {
            "display": "value",
            "file_format": "json",
            "key": self._api_key,
        }
        response = self._get("/preds/skill-ratings", params)
        if not isinstance(response.data, dict) or not isinstance(response.data.get("players"), list):
            raise MalformedPayload("Skill ratings payload has no 'players' list")
        response.last_updated = response.data.get("last_updated")
        return response

    def get_event_list(self, tour: str) -> FeedResponse:
        """List the events DataGolf holds finishing positions for."""

        params: MutableMapping[str, str] = {
            "tour": tour,
            "file_format": "json",
            "key": self._api_key,
        }
        response = self._get("/historical-event-data/event-list", params)
        events = response.data
        if isinstance(events, dict):
            events = events.get("events")
        if not isinstance(events, list):
            raise MalformedPayload("Event list payload is not a list")
        response.data = events
        return response

    def get_event_finishes(self, tour: str, event_id: str, year: int) -> FeedResponse:
        params: MutableMapping[str, str] = {
            "tour": tour,
            "event_id": str(event_id),
            "year": str(year),
            "file_format": "json",
            "key": self._api_key,
        }
        response = self._get("/historical-event-data/events", params)
        rows = response.data
        if isinstance(rows, dict):
            rows = next(
                (rows[name] for name in _FINISH_FIELDS if isinstance(rows.get(name), list)),
                None,
            )
        if not isinstance(rows, list):
            raise MalformedPayload("Event finishes payload has no player list")
        response.data = rows
        return response

    def _get(self, path: str, params: Mapping[str, str]) -> FeedResponse:
        url = f"{self.BASE_URL}{path}"
        try:
            response = self._session.get(
                url,
                params=params,
                timeout=self._timeout,
                headers={"User-Agent": self.USER_AGENT, "Accept": "application/json"},
            )
        except requests.Timeout as exc:
            raise FeedTimeout(f"DataGolf request to {path} timed out") from exc
        except requests.RequestException as exc:
            raise FeedHttpError(f"DataGolf request to {path} failed: {exc}") from exc

        if response.status_code != 200:
            raise FeedHttpError(
                f"DataGolf request failed with status {response.status_code}: {response.text[:200]}",
                status=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedPayload(f"DataGolf returned non-JSON body for {path}") from exc

        return FeedResponse(data, datetime.now(timezone.utc))
