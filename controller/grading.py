"""Grading of stored picks against final tournament positions.

Value picks, avoid picks and head-to-head matchups are saved as snapshots
whenever they are generated, often several times per event.  ``PickLedger``
folds those snapshots into one set of picks per tournament and
``ResultsGrader`` scores them once the leaderboard is final.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional, Sequence

from feeds.sources import MISSING_POSITION, Finish
from normalize.names import IdentityNormalizer
from odds_engine.consensus import OddsConversionError, american_to_decimal, parse_american
from snapshots.models import Snapshot, event_name_of

PREDICTIONS_NAMESPACE = "predictions"
AVOID_PICKS_NAMESPACE = "avoid-picks"
MATCHUPS_NAMESPACE = "matchups"
PICK_NAMESPACES = (PREDICTIONS_NAMESPACE, AVOID_PICKS_NAMESPACE, MATCHUPS_NAMESPACE)

MADE_CUT_POSITION = 65
AVOID_POSITION = 20
STAKE = Decimal(100)
NO_FINISH = "MC/WD"


@dataclass
class TournamentPicks:
    """Every distinct pick stored for one tournament."""

    tournament: Dict[str, Any]
    generated_at: int = 0
    value_picks: List[Dict[str, Any]] = field(default_factory=list)
    avoid_picks: List[Dict[str, Any]] = field(default_factory=list)
    matchups: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def name(self) -> str:
        return str(self.tournament.get("name") or "")


@dataclass
class GradedPick:
    player: str
    odds: Any
    position: str
    performance: str
    roi: Decimal


@dataclass
class ValueAnalysis:
    total_picks: int = 0
    wins: int = 0
    top5s: int = 0
    top10s: int = 0
    top20s: int = 0
    made_cut: int = 0
    missed_cut: int = 0
    not_found: int = 0
    total_roi: Decimal = Decimal(0)
    picks: List[GradedPick] = field(default_factory=list)


@dataclass
class AvoidVerdict:
    player: str
    odds: Any
    position: str
    verdict: str


@dataclass
class AvoidAnalysis:
    total_picks: int = 0
    correct_avoids: int = 0
    wrong_avoids: int = 0
    picks: List[AvoidVerdict] = field(default_factory=list)


@dataclass
class MatchupOutcome:
    pick: str
    pick_position: str
    opponent: str
    opponent_position: str
    result: str


@dataclass
class MatchupAnalysis:
    total_matchups: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    matchups: List[MatchupOutcome] = field(default_factory=list)


@dataclass
class TournamentReport:
    picks: TournamentPicks
    status: str
    value_analysis: Optional[ValueAnalysis] = None
    avoid_analysis: Optional[AvoidAnalysis] = None
    matchup_analysis: Optional[MatchupAnalysis] = None

    @property
    def generated_at(self) -> int:
        return self.picks.generated_at


@dataclass
class ResultsSummary:
    total_tournaments: int = 0
    completed_tournaments: int = 0
    overall_roi: Decimal = Decimal(0)
    total_bets: int = 0
    matchup_wins: int = 0
    matchup_total: int = 0
    avoid_correct: int = 0
    avoid_total: int = 0


@dataclass
class PredictionResults:
    tournaments: List[TournamentReport]
    summary: ResultsSummary


def opponent_of(matchup: Mapping[str, Any]) -> str:
    pick = str(matchup.get("pick") or "")
    player_a = _side_name(matchup.get("playerA"))
    player_b = _side_name(matchup.get("playerB"))
    return player_b if player_a == pick else player_a


class PickLedger:
    """Merges pick snapshots by tournament name, keeping the first copy of each pick."""

    def __init__(self, normalizer: Optional[IdentityNormalizer] = None) -> None:
        self._normalizer = normalizer or IdentityNormalizer()
        self.tournaments: Dict[str, TournamentPicks] = {}

    def add(self, namespace: str, key: str, record: Mapping[str, Any]) -> bool:
        """Fold one stored record in; records without a tournament name are ignored."""

        name = event_name_of(record)
        if not name:
            return False
        snapshot = Snapshot.from_record(key, record)
        entry = self.tournaments.get(name)
        if entry is None:
            tournament = record.get("tournament")
            details = dict(tournament) if isinstance(tournament, Mapping) else {}
            details["name"] = name
            entry = self.tournaments[name] = TournamentPicks(details)
        entry.generated_at = max(entry.generated_at, snapshot.generated_at)

        payload = snapshot.payload
        if namespace == PREDICTIONS_NAMESPACE:
            self._merge(entry.value_picks, payload.get("predictions"), self._player_key)
        elif namespace == AVOID_PICKS_NAMESPACE:
            self._merge(entry.avoid_picks, payload.get("avoidPicks"), self._player_key)
        elif namespace == MATCHUPS_NAMESPACE:
            self._merge(entry.matchups, payload.get("suggestedMatchups"), self._matchup_key)
        return True

    def _merge(
        self,
        target: List[Dict[str, Any]],
        items: Any,
        key_of: Callable[[Mapping[str, Any]], Hashable],
    ) -> None:
        if not isinstance(items, list):
            return
        seen = {key_of(existing) for existing in target}
        for item in items:
            if not isinstance(item, Mapping):
                continue
            key = key_of(item)
            if key in seen:
                continue
            seen.add(key)
            target.append(dict(item))

    def _player_key(self, pick: Mapping[str, Any]) -> str:
        return self._normalizer.normalize(str(pick.get("player") or ""))

    def _matchup_key(self, matchup: Mapping[str, Any]) -> tuple:
        return (
            self._normalizer.normalize(str(matchup.get("pick") or "")),
            self._normalizer.normalize(opponent_of(matchup)),
        )


class ResultsGrader:
    """Scores picks against a final leaderboard.

    Players are looked up by exact normalized key only; a surname guess is
    not good enough to settle a bet.
    """

    def __init__(self, normalizer: Optional[IdentityNormalizer] = None) -> None:
        self._normalizer = normalizer or IdentityNormalizer()

    def find(self, name: str, finishes: Sequence[Finish]) -> Optional[Finish]:
        key = self._normalizer.normalize(name or "")
        if not key:
            return None
        for finish in finishes:
            if self._normalizer.normalize(finish.player) == key:
                return finish
        return None

    def grade(self, picks: TournamentPicks, finishes: Sequence[Finish]) -> TournamentReport:
        report = TournamentReport(picks, "completed")
        if picks.value_picks:
            report.value_analysis = self.grade_value_picks(picks.value_picks, finishes)
        if picks.avoid_picks:
            report.avoid_analysis = self.grade_avoid_picks(picks.avoid_picks, finishes)
        if picks.matchups:
            report.matchup_analysis = self.grade_matchups(picks.matchups, finishes)
        return report

    def grade_value_picks(
        self, picks: Sequence[Mapping[str, Any]], finishes: Sequence[Finish]
    ) -> ValueAnalysis:
        analysis = ValueAnalysis(total_picks=len(picks))
        for pick in picks:
            player = str(pick.get("player") or "")
            finish = self.find(player, finishes)
            roi = -STAKE
            if finish is None:
                analysis.not_found += 1
                performance = "not-found"
            elif finish.rank == 1:
                analysis.wins += 1
                performance = "win"
                roi = winning_roi(pick.get("odds"))
            elif finish.rank <= 5:
                analysis.top5s += 1
                performance = "top-5"
            elif finish.rank <= 10:
                analysis.top10s += 1
                performance = "top-10"
            elif finish.rank <= 20:
                analysis.top20s += 1
                performance = "top-20"
            elif finish.rank <= MADE_CUT_POSITION:
                analysis.made_cut += 1
                performance = "made-cut"
            else:
                analysis.missed_cut += 1
                performance = "missed-cut"

            analysis.total_roi += roi
            analysis.picks.append(
                GradedPick(
                    player=player,
                    odds=pick.get("odds"),
                    position=finish.position if finish else "N/A",
                    performance=performance,
                    roi=roi,
                )
            )
        return analysis

    def grade_avoid_picks(
        self, picks: Sequence[Mapping[str, Any]], finishes: Sequence[Finish]
    ) -> AvoidAnalysis:
        analysis = AvoidAnalysis(total_picks=len(picks))
        for pick in picks:
            player = str(pick.get("player") or "")
            finish = self.find(player, finishes)
            if finish is not None and finish.rank <= AVOID_POSITION:
                analysis.wrong_avoids += 1
                verdict = "wrong"
            else:
                analysis.correct_avoids += 1
                verdict = "correct"
            analysis.picks.append(
                AvoidVerdict(player, pick.get("odds"), _shown_position(finish), verdict)
            )
        return analysis

    def grade_matchups(
        self, matchups: Sequence[Mapping[str, Any]], finishes: Sequence[Finish]
    ) -> MatchupAnalysis:
        analysis = MatchupAnalysis(total_matchups=len(matchups))
        for matchup in matchups:
            pick = str(matchup.get("pick") or "")
            opponent = opponent_of(matchup)
            pick_finish = self.find(pick, finishes)
            opponent_finish = self.find(opponent, finishes)
            pick_rank = pick_finish.rank if pick_finish else MISSING_POSITION
            opponent_rank = opponent_finish.rank if opponent_finish else MISSING_POSITION

            if pick_rank < opponent_rank:
                analysis.wins += 1
                result = "win"
            elif pick_rank > opponent_rank:
                analysis.losses += 1
                result = "loss"
            else:
                analysis.pushes += 1
                result = "push"
            analysis.matchups.append(
                MatchupOutcome(
                    pick=pick,
                    pick_position=_shown_position(pick_finish),
                    opponent=opponent,
                    opponent_position=_shown_position(opponent_finish),
                    result=result,
                )
            )
        return analysis


def winning_roi(odds: Any) -> Decimal:
    """Profit on a winning 100 stake; zero when the stored price is unusable."""

    try:
        price = parse_american(odds)
    except OddsConversionError:
        return Decimal(0)
    return STAKE * american_to_decimal(price) - STAKE


def summarize(reports: Sequence[TournamentReport]) -> ResultsSummary:
    summary = ResultsSummary(total_tournaments=len(reports))
    for report in reports:
        if report.status == "completed":
            summary.completed_tournaments += 1
        if report.value_analysis:
            summary.overall_roi += report.value_analysis.total_roi
            summary.total_bets += report.value_analysis.total_picks
        if report.matchup_analysis:
            summary.matchup_wins += report.matchup_analysis.wins
            summary.matchup_total += report.matchup_analysis.total_matchups
        if report.avoid_analysis:
            summary.avoid_correct += report.avoid_analysis.correct_avoids
            summary.avoid_total += report.avoid_analysis.total_picks
    return summary


def _shown_position(finish: Optional[Finish]) -> str:
    if finish is None or not finish.position:
        return NO_FINISH
    return finish.position


def _side_name(side: Any) -> str:
    if isinstance(side, Mapping):
        return str(side.get("name") or "")
    return ""
