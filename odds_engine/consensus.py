"""Consensus pricing across bookmakers."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from normalize.names import IdentityMatcher, display_name


class OddsConversionError(ValueError):
    """Raised when an odds value cannot be converted."""


@dataclass(frozen=True)
class PriceQuote:
    """One bookmaker's price for one contestant."""

    bookmaker_id: str
    price_american: int


@dataclass(frozen=True)
class SourceQuote:
    """A quote as a feed delivered it, before the contestant is resolved."""

    source_id: str
    raw_name: str
    quote: PriceQuote


@dataclass
class ConsensusPrice:
    """Aggregate of every quote carried for one contestant."""

    contestant: str
    average_price: int
    best_price: int
    worst_price: int
    best_bookmaker: str
    worst_bookmaker: str
    bookmaker_count: int

    @property
    def display(self) -> str:
        return format_american_odds(self.average_price)

    def to_dict(self) -> Dict[str, object]:
        return {
            "player": self.contestant,
            "odds": self.average_price,
            "americanOdds": self.display,
            "bestOdds": self.best_price,
            "worstOdds": self.worst_price,
            "bestBookmaker": self.best_bookmaker,
            "worstBookmaker": self.worst_bookmaker,
            "bookmakerCount": self.bookmaker_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "ConsensusPrice":
        return cls(
            contestant=str(data["player"]),
            average_price=int(data["odds"]),
            best_price=int(data["bestOdds"]),
            worst_price=int(data["worstOdds"]),
            best_bookmaker=str(data.get("bestBookmaker") or ""),
            worst_bookmaker=str(data.get("worstBookmaker") or ""),
            bookmaker_count=int(data.get("bookmakerCount") or 0),
        )


PriceRank = Callable[[int], Decimal]


def american_to_decimal(american: int) -> Decimal:
    if american == 0:
        raise OddsConversionError("American odds cannot be zero")
    if american > 0:
        return Decimal(american) / Decimal(100) + Decimal(1)
    return Decimal(100) / Decimal(abs(american)) + Decimal(1)


def american_to_probability(american: int) -> Decimal:
    decimal_odds = american_to_decimal(american)
    return Decimal(1) / decimal_odds


def parse_american(value: object) -> int:
    """Parse ``1200``, ``"+1200"`` or ``"-110"`` into a signed integer price."""

    if isinstance(value, bool):
        raise OddsConversionError(f"Not an odds value: {value!r}")
    try:
        if isinstance(value, str):
            price = int(value.strip().lstrip("+"))
        else:
            price = int(value)
    except (TypeError, ValueError) as exc:
        raise OddsConversionError(f"Not an odds value: {value!r}") from exc
    if price == 0:
        raise OddsConversionError("American odds cannot be zero")
    return price


def format_american_odds(american: Optional[int]) -> str:
    if not american:
        return "N/A"
    return f"+{american}" if american > 0 else f"{american}"


def signed_price_rank(american: int) -> Decimal:
    """Sportsbook convention: a larger signed number is better for the bettor.

    Not monotonic in payout across the +/- boundary: ``+50`` outranks
    ``-150`` even though ``-150`` pays more.
    """

    return Decimal(american)


def payout_price_rank(american: int) -> Decimal:
    """Rank by decimal payout per unit staked."""

    return american_to_decimal(american)


def average_price(prices: Sequence[int]) -> int:
    """Arithmetic mean rounded to the nearest integer, halves away from zero."""

    mean = Decimal(sum(prices)) / Decimal(len(prices))
    return int(mean.to_integral_value(rounding=ROUND_HALF_UP))


def aggregate(
    contestant: str,
    quotes: Iterable[PriceQuote],
    rank: PriceRank = signed_price_rank,
) -> Optional[ConsensusPrice]:
    quotes = list(quotes)
    if not quotes:
        return None

    best = worst = quotes[0]
    best_rank = worst_rank = rank(quotes[0].price_american)
    for quote in quotes[1:]:
        value = rank(quote.price_american)
        # strict comparisons keep the first quote on ties
        if value > best_rank:
            best, best_rank = quote, value
        if value < worst_rank:
            worst, worst_rank = quote, value

    return ConsensusPrice(
        contestant=contestant,
        average_price=average_price([quote.price_american for quote in quotes]),
        best_price=best.price_american,
        worst_price=worst.price_american,
        best_bookmaker=best.bookmaker_id,
        worst_bookmaker=worst.bookmaker_id,
        bookmaker_count=len(quotes),
    )


def aggregate_field(
    quotes: Iterable[SourceQuote],
    matcher: Optional[IdentityMatcher] = None,
    rank: PriceRank = signed_price_rank,
) -> List[ConsensusPrice]:
    """Resolve contestants across sources and aggregate each one.

    The consensus is named after the first spelling seen for the contestant,
    rendered as "Given Surname".  Spellings one feed lists separately stay
    separate contestants even when they share a surname.
    Quotes keep their feed order within a contestant, so ties at an extreme
    resolve to the earliest source.
    """

    matcher = matcher or IdentityMatcher()
    quotes = list(quotes)
    sources: Dict[str, Set[str]] = {}
    for quote in quotes:
        sources.setdefault(quote.raw_name, set()).add(quote.source_id)
    groups = matcher.group(list(sources), sources)
    group_of = {name: index for index, names in enumerate(groups) for name in names}

    merged: List[List[PriceQuote]] = [[] for _ in groups]
    for quote in quotes:
        merged[group_of[quote.raw_name]].append(quote.quote)

    results: List[ConsensusPrice] = []
    for names, group_quotes in zip(groups, merged):
        consensus = aggregate(display_name(names[0]), group_quotes, rank=rank)
        if consensus is not None:
            results.append(consensus)
    return results
