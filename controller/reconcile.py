"""Reconciliation of feeds into per-event views, and snapshot orchestration."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import requests

from controller.config import AppConfig
from controller.grading import (
    PICK_NAMESPACES,
    PickLedger,
    PredictionResults,
    ResultsGrader,
    TournamentReport,
    summarize,
)
from feeds.client import DataGolfClient, FeedError
from feeds.sources import (
    DataGolfOddsFeed,
    DataGolfResultsFeed,
    DataGolfStatsFeed,
    OddsFeed,
    ResultsFeed,
    StatLine,
    StatsFeed,
    estimated_stats,
)
from normalize.names import IdentityMatcher, IdentityNormalizer
from normalize.tours import Tour, same_event
from odds_engine.consensus import ConsensusPrice, SourceQuote, aggregate_field
from persistence.database import Database
from persistence.store import CorruptSnapshot, SnapshotStore, StoreUnavailable
from snapshots.keys import key_time, latest_key, newest_first, player_data_key, tour_prefix, weather_key
from snapshots.models import Snapshot, event_name_of, to_millis
from snapshots.resolver import Resolution, TournamentResolver
from snapshots.validation import CacheValidator

ODDS_NAMESPACE = "odds"
PLAYER_DATA_NAMESPACE = "player-data"
WEATHER_NAMESPACE = "weather-cache"


class BaselineUnavailable(RuntimeError):
    """Raised when a comparison needs the stored baseline and cannot get it."""


@dataclass
class OddsBoard:
    """Consensus prices for one event and which feeds contributed."""

    tour: str
    event_name: str
    prices: List[ConsensusPrice]
    fetched_at: datetime
    sources_ok: List[str] = field(default_factory=list)
    sources_failed: Dict[str, str] = field(default_factory=dict)

    @property
    def all_failed(self) -> bool:
        return not self.sources_ok

    @property
    def source(self) -> str:
        if self.all_failed:
            return "unavailable"
        return ", ".join(self.sources_ok)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "odds": [price.to_dict() for price in self.prices],
            "source": self.source,
            "sourcesFailed": dict(self.sources_failed),
            "fetchedAt": self.fetched_at.isoformat(),
            "playerCount": len(self.prices),
        }


@dataclass
class PlayerStats:
    player: str
    stats: StatLine


@dataclass
class StatsReport:
    players: List[PlayerStats]
    sources_ok: List[str] = field(default_factory=list)
    sources_failed: Dict[str, str] = field(default_factory=dict)

    @property
    def matched_count(self) -> int:
        return sum(1 for p in self.players if not p.stats.not_found and not p.stats.estimated)

    @property
    def not_found_count(self) -> int:
        return sum(1 for p in self.players if p.stats.not_found)

    @property
    def estimated_count(self) -> int:
        return sum(1 for p in self.players if p.stats.estimated)

    @property
    def using_estimates(self) -> bool:
        return self.estimated_count > 0


@dataclass
class PriceMovement:
    player: str
    current_price: int
    baseline_price: Optional[int]
    baseline_key: str

    @property
    def change(self) -> Optional[int]:
        if self.baseline_price is None:
            return None
        return self.current_price - self.baseline_price


@dataclass
class CachedArtifact:
    data: Dict[str, Any]
    from_cache: bool
    reason: str


class ReconcileController:
    def __init__(
        self,
        config: AppConfig,
        database: Database,
        odds_feeds: Sequence[OddsFeed] = (),
        stats_feeds: Sequence[StatsFeed] = (),
        matcher: Optional[IdentityMatcher] = None,
        clock: Optional[Callable[[], datetime]] = None,
        results_feed: Optional[ResultsFeed] = None,
    ) -> None:
        self._config = config
        self._db = database
        self._odds_feeds = list(odds_feeds)
        self._stats_feeds = list(stats_feeds)
        self._results_feed = results_feed
        self._matcher = matcher or IdentityMatcher(IdentityNormalizer(config.surname_strategy))
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._validator = CacheValidator(self._clock)

    @classmethod
    def from_config(
        cls, config: AppConfig, session: Optional[requests.Session] = None
    ) -> "ReconcileController":
        client = DataGolfClient(config.api_key, session=session, timeout=config.request_timeout)
        return cls(
            config,
            Database(config.database_path),
            odds_feeds=[DataGolfOddsFeed(client, regions=config.regions)],
            stats_feeds=[DataGolfStatsFeed(client)],
            results_feed=DataGolfResultsFeed(client),
        )

    def consensus_board(self, tour: Tour | str, event_name: str = "") -> OddsBoard:
        tour = Tour.parse(tour)
        quotes: List[SourceQuote] = []
        ok: List[str] = []
        failed: Dict[str, str] = {}
        for feed in self._odds_feeds:
            try:
                fetched = feed.fetch_quotes(tour)
            except FeedError as exc:
                self._db.log(
                    "error",
                    "Odds fetch failed",
                    {"source": feed.source_id, "tour": tour.value, "kind": exc.kind, "error": str(exc)},
                )
                failed[feed.source_id] = exc.kind
                continue
            ok.append(feed.source_id)
            quotes.extend(fetched)

        prices = aggregate_field(quotes, self._matcher, rank=self._config.price_rank)
        self._db.log(
            "info",
            "Odds reconciled",
            {
                "tour": tour.value,
                "event": event_name,
                "quotes": len(quotes),
                "players": len(prices),
                "sources_ok": ok,
                "sources_failed": failed,
            },
        )
        return OddsBoard(
            tour=tour.value,
            event_name=event_name,
            prices=prices,
            fetched_at=self._clock(),
            sources_ok=ok,
            sources_failed=failed,
        )

    def match_stats(self, players: Sequence[str], tour: Tour | str = Tour.PRIMARY) -> StatsReport:
        """Attach a stat line to every requested player.

        Unmatched players get a ``not_found`` line.  When no feed yields any
        rows, every player gets an estimated line instead.
        """

        tour = Tour.parse(tour)
        rows: List[StatLine] = []
        ok: List[str] = []
        failed: Dict[str, str] = {}
        for feed in self._stats_feeds:
            try:
                fetched = feed.fetch_stats(tour)
            except FeedError as exc:
                self._db.log(
                    "error",
                    "Stats fetch failed",
                    {"source": feed.source_id, "kind": exc.kind, "error": str(exc)},
                )
                failed[feed.source_id] = exc.kind
                continue
            ok.append(feed.source_id)
            rows.extend(fetched)

        if not rows:
            self._db.log("warning", "Using estimated stats", {"players": len(players)})
            estimated = estimated_stats(players)
            return StatsReport(
                players=[PlayerStats(line.name, line) for line in estimated],
                sources_ok=ok,
                sources_failed=failed,
            )

        results: List[PlayerStats] = []
        for player in players:
            line = self._matcher.find(player, rows, name_of=lambda row: row.name)
            results.append(PlayerStats(player, line or StatLine(name=player, not_found=True)))

        report = StatsReport(players=results, sources_ok=ok, sources_failed=failed)
        self._db.log(
            "info",
            "Stats matched",
            {
                "found": report.matched_count,
                "not_found": report.not_found_count,
                "estimated": report.estimated_count,
            },
        )
        return report

    def save_snapshot(
        self,
        namespace: str,
        tour: Tour | str,
        event_name: str,
        payload: Mapping[str, Any],
        at: Optional[datetime] = None,
    ) -> Snapshot:
        snapshot = Snapshot.create(Tour.parse(tour), event_name, payload, at or self._clock())
        store = self._db.store(namespace)
        try:
            store.set(snapshot.key, snapshot.to_record())
        except StoreUnavailable as exc:
            self._db.log(
                "error",
                "Snapshot write failed",
                {"store": namespace, "key": snapshot.key, "error": str(exc)},
            )
            raise
        self._db.log("info", "Snapshot saved", {"store": namespace, "key": snapshot.key})
        return snapshot

    def latest_snapshot(
        self, namespace: str, tour: Tour | str, event_name: Optional[str] = None
    ) -> Optional[Resolution]:
        resolver = TournamentResolver(self._db.store(namespace), self._db)
        return resolver.resolve(Tour.parse(tour), event_name)

    def capture_odds_snapshot(
        self, tour: Tour | str, event_name: str, at: Optional[datetime] = None
    ) -> Optional[Snapshot]:
        """Persist the current consensus board and prune old odds snapshots.

        Returns ``None`` without writing when every odds feed failed.
        """

        tour = Tour.parse(tour)
        board = self.consensus_board(tour, event_name)
        if board.all_failed:
            self._db.log(
                "warning",
                "Odds snapshot skipped",
                {"tour": tour.value, "event": event_name, "sources_failed": board.sources_failed},
            )
            return None

        snapshot = self.save_snapshot(ODDS_NAMESPACE, tour, event_name, board.to_payload(), at)
        store = self._db.store(ODDS_NAMESPACE)
        pointer = latest_key(tour, event_name)
        try:
            store.set(pointer, snapshot.to_record())
        except StoreUnavailable as exc:
            self._db.log("warning", "Latest odds pointer not updated", {"key": pointer, "error": str(exc)})
        self.prune_odds_snapshots(tour, now=at)
        return snapshot

    def prune_odds_snapshots(
        self, tour: Tour | str, now: Optional[datetime] = None
    ) -> List[str]:
        """Delete timestamped odds snapshots older than the retention window."""

        store = self._db.store(ODDS_NAMESPACE)
        cutoff = _as_utc(now or self._clock()) - self._config.odds_retention
        deleted: List[str] = []
        try:
            for key in store.list(tour_prefix(Tour.parse(tour))):
                written = key_time(key)
                if written is not None and written < cutoff:
                    store.delete(key)
                    deleted.append(key)
        except StoreUnavailable as exc:
            self._db.log("warning", "Odds cleanup skipped", {"error": str(exc)})
            return deleted
        if deleted:
            self._db.log("info", "Old odds snapshots removed", {"keys": deleted})
        return deleted

    def odds_movement(self, tour: Tour | str, event_name: str) -> List[PriceMovement]:
        """Compare current consensus prices with the first snapshot taken for the event."""

        tour = Tour.parse(tour)
        baseline_key, baseline = self._first_odds_snapshot(tour, event_name)
        baseline_prices: List[ConsensusPrice] = []
        for row in baseline.payload.get("odds", []):
            try:
                baseline_prices.append(ConsensusPrice.from_dict(row))
            except (KeyError, TypeError, ValueError):
                continue

        board = self.consensus_board(tour, event_name)
        movements: List[PriceMovement] = []
        for price in board.prices:
            previous = self._matcher.find(
                price.contestant, baseline_prices, name_of=lambda p: p.contestant
            )
            movements.append(
                PriceMovement(
                    player=price.contestant,
                    current_price=price.average_price,
                    baseline_price=previous.average_price if previous else None,
                    baseline_key=baseline_key,
                )
            )
        return movements

    def cached_player_data(
        self,
        tour: Tour | str,
        event_name: Optional[str],
        loader: Callable[[], Dict[str, Any]],
    ) -> CachedArtifact:
        tour = Tour.parse(tour)
        return self.cached_artifact(
            PLAYER_DATA_NAMESPACE,
            player_data_key(tour, event_name),
            tour,
            event_name,
            self._config.player_data_max_age,
            loader,
        )

    def cached_weather(
        self,
        tour: Tour | str,
        event_name: str,
        loader: Callable[[], Dict[str, Any]],
    ) -> CachedArtifact:
        tour = Tour.parse(tour)
        return self.cached_artifact(
            WEATHER_NAMESPACE,
            weather_key(tour, event_name),
            tour,
            event_name,
            self._config.weather_max_age,
            loader,
        )

    def cached_artifact(
        self,
        namespace: str,
        key: str,
        tour: Tour,
        event_name: Optional[str],
        max_age: timedelta,
        loader: Callable[[], Dict[str, Any]],
    ) -> CachedArtifact:
        """Serve ``key`` from the store while it is valid, else rebuild it with ``loader``.

        An unavailable store means the artifact is computed directly and not
        written back.
        """

        store = self._db.store(namespace)
        store_ok = True
        cached: Optional[Dict[str, Any]] = None
        try:
            cached = store.get(key)
        except StoreUnavailable as exc:
            store_ok = False
            self._db.log("warning", "Cache read failed", {"store": namespace, "key": key, "error": str(exc)})
        except CorruptSnapshot as exc:
            self._db.log("warning", "Cache entry unreadable", {"store": namespace, "key": key, "error": str(exc)})

        decision = self._validator.evaluate(cached, event_name, max_age)
        if decision.valid and cached is not None:
            self._db.log("info", "Cache hit", {"store": namespace, "key": key})
            return CachedArtifact(dict(cached.get("payload") or {}), True, decision.reason)

        self._db.log("info", "Cache miss", {"store": namespace, "key": key, "reason": decision.reason})
        data = loader()
        if store_ok:
            record = {
                "tour": tour.value,
                "timestamp": to_millis(self._clock()),
                "tournament": {"name": event_name} if event_name else None,
                "payload": data,
            }
            try:
                store.set(key, record)
            except StoreUnavailable as exc:
                self._db.log("warning", "Cache write failed", {"store": namespace, "key": key, "error": str(exc)})
        return CachedArtifact(data, False, decision.reason)

    def prediction_results(self, tour: Tour | str = Tour.PRIMARY) -> PredictionResults:
        """Grade every stored set of picks for ``tour`` against final positions.

        Picks are merged per tournament across all snapshots.  Tournaments
        whose results are not final yet are left out; a results feed failure
        is reported on that tournament with status ``error``.
        """

        if self._results_feed is None:
            raise RuntimeError("No results feed configured")
        tour = Tour.parse(tour)
        grader = ResultsGrader(self._matcher.normalizer)
        ledger = self._load_picks(tour)

        reports: List[TournamentReport] = []
        for picks in ledger.tournaments.values():
            try:
                results = self._results_feed.fetch_results(tour, picks.tournament)
            except FeedError as exc:
                self._db.log(
                    "error",
                    "Results fetch failed",
                    {"tournament": picks.name, "kind": exc.kind, "error": str(exc)},
                )
                reports.append(TournamentReport(picks, "error"))
                continue
            if not results.completed:
                self._db.log(
                    "info",
                    "Tournament not graded",
                    {"tournament": picks.name, "status": results.status},
                )
                continue
            reports.append(grader.grade(picks, results.finishes))

        reports.sort(key=lambda report: report.generated_at, reverse=True)
        summary = summarize(reports)
        self._db.log(
            "info",
            "Prediction results graded",
            {
                "tour": tour.value,
                "tournaments": summary.total_tournaments,
                "completed": summary.completed_tournaments,
                "total_bets": summary.total_bets,
                "overall_roi": str(summary.overall_roi),
            },
        )
        return PredictionResults(reports, summary)

    def _load_picks(self, tour: Tour) -> PickLedger:
        ledger = PickLedger(self._matcher.normalizer)
        for namespace in PICK_NAMESPACES:
            store = self._db.store(namespace)
            try:
                keys = store.list(tour_prefix(tour))
            except StoreUnavailable as exc:
                self._db.log("warning", "Pick store unavailable", {"store": namespace, "error": str(exc)})
                continue
            for key in reversed(newest_first(keys)):
                try:
                    record = store.get(key)
                except (StoreUnavailable, CorruptSnapshot) as exc:
                    self._db.log("warning", "Pick snapshot skipped", {"store": namespace, "key": key, "error": str(exc)})
                    continue
                if record is not None:
                    ledger.add(namespace, key, record)
        return ledger

    def _first_odds_snapshot(self, tour: Tour, event_name: str) -> tuple[str, Snapshot]:
        store: SnapshotStore = self._db.store(ODDS_NAMESPACE)
        try:
            keys = [key for key in store.list(tour_prefix(tour)) if key_time(key) is not None]
        except StoreUnavailable as exc:
            self._db.log("error", "Odds baseline unavailable", {"tour": tour.value, "error": str(exc)})
            raise BaselineUnavailable(f"Odds store unavailable: {exc}") from exc

        for key in reversed(newest_first(keys)):
            try:
                record = store.get(key)
            except CorruptSnapshot:
                continue
            except StoreUnavailable as exc:
                raise BaselineUnavailable(f"Odds store unavailable: {exc}") from exc
            if record is not None and same_event(event_name_of(record), event_name):
                return key, Snapshot.from_record(key, record)
        raise BaselineUnavailable(f"No odds baseline stored for {event_name!r}")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
