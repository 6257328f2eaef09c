"""Feed adapters: turn raw provider payloads into quotes, stat lines and finishes."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from feeds.catalog import BookmakerInfo, filter_bookmakers_by_regions
from feeds.client import DataGolfClient, MalformedPayload
from normalize.names import clean_name, display_name
from normalize.tours import Tour
from odds_engine.consensus import OddsConversionError, PriceQuote, SourceQuote, parse_american

MISSING_POSITION = 999

_NON_DIGIT_RE = re.compile(r"[^0-9]")


@dataclass
class StatLine:
    """Strokes-gained profile for one player."""

    name: str
    rank: Optional[int] = None
    sg_total: float = 0.0
    sg_ott: float = 0.0
    sg_app: float = 0.0
    sg_arg: float = 0.0
    sg_putt: float = 0.0
    estimated: bool = False
    not_found: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Finish:
    """Final leaderboard line: ``position`` is the feed's text ("1", "T5", "MC")."""

    player: str
    position: str

    @property
    def rank(self) -> int:
        return parse_position(self.position)


@dataclass
class EventResults:
    status: str
    finishes: List[Finish] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.status == "completed" and bool(self.finishes)


class OddsFeed(Protocol):
    source_id: str

    def fetch_quotes(self, tour: Tour) -> List[SourceQuote]:
        ...


class StatsFeed(Protocol):
    source_id: str

    def fetch_stats(self, tour: Tour) -> List[StatLine]:
        ...


class ResultsFeed(Protocol):
    source_id: str

    def fetch_results(self, tour: Tour, tournament: Mapping[str, Any]) -> EventResults:
        ...


class DataGolfOddsFeed:
    """Outright win prices, one quote per bookmaker column."""

    def __init__(
        self,
        client: DataGolfClient,
        regions: Iterable[str] = (),
        source_id: str = "datagolf",
    ) -> None:
        self._client = client
        self._books = filter_bookmakers_by_regions(regions)
        self.source_id = source_id

    def fetch_quotes(self, tour: Tour) -> List[SourceQuote]:
        response = self._client.get_outrights(tour.feed_code)
        return parse_outrights(response.data["odds"], self._books, self.source_id)


class DataGolfStatsFeed:
    def __init__(self, client: DataGolfClient, source_id: str = "datagolf-ratings") -> None:
        self._client = client
        self.source_id = source_id

    def fetch_stats(self, tour: Tour) -> List[StatLine]:
        response = self._client.get_skill_ratings()
        return parse_skill_ratings(response.data["players"])


class DataGolfResultsFeed:
    """Final positions from DataGolf's historical event data.

    The event is located in the event list by id when the stored tournament
    carries one, otherwise by name.
    """

    def __init__(
        self,
        client: DataGolfClient,
        source_id: str = "datagolf-results",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._client = client
        self.source_id = source_id
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def fetch_results(self, tour: Tour, tournament: Mapping[str, Any]) -> EventResults:
        event_id = tournament.get("eventId") or tournament.get("event_id")
        events = self._client.get_event_list(tour.feed_code).data
        match = find_event(events, event_id, str(tournament.get("name") or ""))
        if match is None and not event_id:
            return EventResults("not_found")

        year = self._clock().year
        if match is not None:
            event_id = match.get("event_id") or match.get("calendar_event_id") or event_id
            year = _safe_int(match.get("calendar_year")) or year
        response = self._client.get_event_finishes(tour.feed_code, str(event_id), year)
        finishes = parse_finishes(response.data)
        return EventResults("completed" if finishes else "not_completed", finishes)


def parse_outrights(
    rows: Sequence[Any],
    books: Sequence[BookmakerInfo],
    source_id: str,
) -> List[SourceQuote]:
    """Extract one ``SourceQuote`` per priced bookmaker column.

    Rows without a player name and columns that are empty, zero or not a
    price are skipped.
    """

    if not isinstance(rows, (list, tuple)):
        raise MalformedPayload("Outrights rows must be a list")
    quotes: List[SourceQuote] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        name = str(row.get("player_name") or "").strip()
        if not clean_name(name):
            continue
        for book in books:
            value = row.get(book.key)
            if value in (None, ""):
                continue
            try:
                price = parse_american(value)
            except OddsConversionError:
                continue
            quotes.append(SourceQuote(source_id, name, PriceQuote(book.key, price)))
    return quotes


def parse_skill_ratings(rows: Sequence[Any]) -> List[StatLine]:
    if not isinstance(rows, (list, tuple)):
        raise MalformedPayload("Skill rating rows must be a list")
    lines: List[StatLine] = []
    for position, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            continue
        name = display_name(str(row.get("player_name") or ""))
        if len(name) <= 2:
            continue
        lines.append(
            StatLine(
                name=name,
                rank=_safe_int(row.get("rank")) or position,
                sg_total=_safe_float(row.get("sg_total")),
                sg_ott=_safe_float(row.get("sg_ott")),
                sg_app=_safe_float(row.get("sg_app")),
                sg_arg=_safe_float(row.get("sg_arg")),
                sg_putt=_safe_float(row.get("sg_putt")),
            )
        )
    return lines


def estimated_stats(players: Sequence[str]) -> List[StatLine]:
    """Placeholder profiles ranked by field order, flagged as estimated.

    Players listed earlier are assumed stronger.
    """

    lines: List[StatLine] = []
    field_size = len(players)
    for index, player in enumerate(players):
        skill = max(0.0, 1 - index / field_size)
        lines.append(
            StatLine(
                name=player,
                rank=index + 1,
                sg_total=round(skill * 2 - 0.5, 2),
                sg_ott=round(skill * 0.5 - 0.2, 2),
                sg_app=round(skill * 0.6 - 0.2, 2),
                sg_arg=round(skill * 0.4 - 0.1, 2),
                sg_putt=round(skill * 0.5 - 0.2, 2),
                estimated=True,
            )
        )
    return lines


def parse_position(value: Any) -> int:
    """Numeric finishing position: "T5" is 5; no digits (MC, WD, missing) is 999."""

    if not value or isinstance(value, bool):
        return MISSING_POSITION
    if isinstance(value, (int, float)):
        return int(value)
    digits = _NON_DIGIT_RE.sub("", str(value))
    return int(digits) if digits else MISSING_POSITION


def parse_finishes(rows: Sequence[Any]) -> List[Finish]:
    """Leaderboard rows ordered by finishing position; nameless rows are dropped."""

    if not isinstance(rows, (list, tuple)):
        raise MalformedPayload("Finish rows must be a list")
    finishes: List[Finish] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        player = str(row.get("player_name") or row.get("player") or "").strip()
        if not player:
            continue
        position = row.get("fin_text") or row.get("finish_position") or row.get("position") or "N/A"
        finishes.append(Finish(player, str(position)))
    finishes.sort(key=lambda finish: finish.rank)
    return finishes


def find_event(
    events: Sequence[Any], event_id: Any, event_name: str
) -> Optional[Dict[str, Any]]:
    """Pick the event-list entry for a tournament, by id first and then by name."""

    listed_events = [event for event in events if isinstance(event, dict)]
    if event_id:
        for event in listed_events:
            if str(event.get("event_id")) == str(event_id):
                return event
    name = event_name.strip().lower()
    for event in listed_events:
        listed = str(event.get("event_name") or "").strip().lower()
        if name and listed and (name in listed or listed in name):
            return event
    return None


def _safe_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _safe_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
