"""Static catalog of the sportsbooks carried by the outrights feed.

The feed reports one column per book, keyed by a short identifier.  The
list below maps those columns to display titles and regions so quotes can
be labelled even when the feed omits titles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence


@dataclass(frozen=True)
class BookmakerInfo:
    """Description of a bookmaker column in the outrights feed."""

    key: str
    title: str
    regions: Sequence[str]


# NOTE: Keep bookmaker entries sorted alphabetically by key.
ALL_BOOKMAKERS: List[BookmakerInfo] = [
    BookmakerInfo("bet365", "Bet365", ("uk", "us")),
    BookmakerInfo("betcris", "BetCRIS", ("eu",)),
    BookmakerInfo("betmgm", "BetMGM", ("us",)),
    BookmakerInfo("betonline", "BetOnline", ("us",)),
    BookmakerInfo("betrivers", "BetRivers", ("us",)),
    BookmakerInfo("betway", "Betway", ("uk", "eu")),
    BookmakerInfo("bovada", "Bovada", ("us",)),
    BookmakerInfo("caesars", "Caesars", ("us",)),
    BookmakerInfo("draftkings", "DraftKings", ("us",)),
    BookmakerInfo("fanduel", "FanDuel", ("us",)),
    BookmakerInfo("pinnacle", "Pinnacle", ("eu",)),
    BookmakerInfo("pointsbet", "PointsBet", ("us",)),
    BookmakerInfo("skybet", "Sky Bet", ("uk",)),
    BookmakerInfo("unibet", "Unibet", ("eu",)),
    BookmakerInfo("williamhill", "William Hill", ("uk",)),
    BookmakerInfo("williamhill_us", "William Hill", ("us",)),
]

_BY_KEY: Dict[str, BookmakerInfo] = {book.key: book for book in ALL_BOOKMAKERS}


def get_bookmaker_info(key: str) -> Optional[BookmakerInfo]:
    return _BY_KEY.get(key)


def filter_bookmakers_by_regions(regions: Iterable[str]) -> List[BookmakerInfo]:
    """Return bookmakers that service any of the provided regions."""

    region_set = {region.lower() for region in regions}
    if not region_set:
        return ALL_BOOKMAKERS
    return [
        bookmaker
        for bookmaker in ALL_BOOKMAKERS
        if any(region in region_set for region in bookmaker.regions)
    ]
