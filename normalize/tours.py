"""Tour classification and event-name slugs."""

from __future__ import annotations

import re
from enum import Enum
from typing import Dict, List, Tuple


class Tour(str, Enum):
    """Competition series used as the namespace prefix for snapshot keys."""

    PRIMARY = "pga"
    SECONDARY = "dp"
    REGIONAL = "kft"
    ALTERNATE = "liv"

    @property
    def feed_code(self) -> str:
        """Tour code understood by the DataGolf feeds."""

        return _FEED_CODES.get(self, self.value)

    @classmethod
    def parse(cls, value: "Tour | str") -> "Tour":
        if isinstance(value, Tour):
            return value
        key = (value or "").strip().lower()
        if key in _ALIASES:
            return _ALIASES[key]
        return cls(key)


_FEED_CODES: Dict[Tour, str] = {Tour.SECONDARY: "euro"}

_ALIASES: Dict[str, Tour] = {
    "euro": Tour.SECONDARY,
    "dpwt": Tour.SECONDARY,
    "primary": Tour.PRIMARY,
    "secondary": Tour.SECONDARY,
    "regional": Tour.REGIONAL,
    "alternate": Tour.ALTERNATE,
}

# Checked in order; the first rule with a matching keyword wins.
TOUR_KEYWORDS: List[Tuple[Tour, Tuple[str, ...]]] = [
    (
        Tour.SECONDARY,
        (
            "dp world",
            "european tour",
            "dubai",
            "scottish open",
            "irish open",
            "spanish open",
            "italian open",
            "bmw pga",
            "dunhill",
            "alfred dunhill",
        ),
    ),
    (Tour.ALTERNATE, ("liv",)),
    (Tour.REGIONAL, ("korn ferry",)),
]


def tour_for_event(event_name: str, default: Tour = Tour.PRIMARY) -> Tour:
    """Map a free-text tournament name onto a tour using keyword rules."""

    name = (event_name or "").lower()
    for tour, keywords in TOUR_KEYWORDS:
        for keyword in keywords:
            if tour is Tour.ALTERNATE:
                if re.search(rf"\b{re.escape(keyword)}\b", name):
                    return tour
            elif keyword in name:
                return tour
    return default


def event_slug(event_name: str) -> str:
    """Lower-case the name, collapse non-alphanumeric runs to '-', trim hyphens."""

    slug = re.sub(r"[^a-z0-9]+", "-", (event_name or "").lower())
    return slug.strip("-")


def clean_event_name(event_name: str) -> str:
    """Drop sponsor suffixes and parenthetical notes from a tournament title."""

    value = re.sub(r"presented by.*", "", event_name or "", flags=re.IGNORECASE)
    value = re.sub(r"\(.*\)", "", value)
    return value.strip()


def same_event(a: str | None, b: str | None) -> bool:
    """Strict event-name comparison: case-insensitive, surrounding space ignored."""

    if a is None or b is None:
        return False
    return a.strip().lower() == b.strip().lower()
