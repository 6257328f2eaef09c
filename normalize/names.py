"""Helpers for canonicalizing contestant names across feeds.

Odds, ratings and field feeds spell the same player differently: some use
"Surname, Given", some decorate names with flags or a parenthetical country
code, some drop accents.  These helpers provide a central place for the
deterministic key and the fuzzy surname fallback so every caller aligns
players the same way.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, TypeVar

T = TypeVar("T")

SurnameStrategy = Callable[["ContestantIdentity"], str]

_FLAG_RE = re.compile("[\U0001F1E6-\U0001F1FF]")
_EMOJI_RE = re.compile("[\U0001F300-\U0001FAFF\u2600-\u27bf\ufe0f\u200d]")
_PAREN_RE = re.compile(r"\([^)]*\)")
_NON_ALPHA_RE = re.compile(r"[^a-z\s]")
_GENERATIONAL_SUFFIXES = frozenset({"jr", "sr", "ii", "iii", "iv"})


@dataclass(frozen=True)
class ContestantIdentity:
    """A contestant name as one feed supplied it, plus its comparable key."""

    raw_name: str
    normalized_key: str

    @property
    def tokens(self) -> List[str]:
        return self.normalized_key.split(" ") if self.normalized_key else []


def clean_name(raw_name: str) -> str:
    """Remove flags, emoji, parenthetical notes and commas, keeping word order."""

    if not raw_name:
        return ""
    value = _FLAG_RE.sub("", raw_name)
    value = _EMOJI_RE.sub("", value)
    value = _PAREN_RE.sub("", value)
    value = value.replace(",", " ")
    return _squash_whitespace(value)


def display_name(raw_name: str) -> str:
    """Human-readable "Given Surname" form of a feed spelling."""

    if not raw_name:
        return ""
    value = _PAREN_RE.sub("", _EMOJI_RE.sub("", _FLAG_RE.sub("", raw_name)))
    if value.count(",") == 1:
        surname, given = (part.strip() for part in value.split(","))
        if surname and given:
            value = f"{given} {surname}"
    return clean_name(value)


@lru_cache(maxsize=2048)
def normalize(raw_name: str) -> str:
    """Return the order-insensitive key for ``raw_name``.

    "Doe, John", "John Doe" and "JOHN DOE (USA)" all produce ``"doe john"``.
    Applying the function to its own output returns the same key.
    """

    cleaned = _fold_accents(clean_name(raw_name)).lower()
    cleaned = _squash_whitespace(_NON_ALPHA_RE.sub("", cleaned))
    if not cleaned:
        return ""
    return " ".join(sorted(cleaned.split(" ")))


def identify(raw_name: str) -> ContestantIdentity:
    return ContestantIdentity(raw_name=raw_name, normalized_key=normalize(raw_name))


def surname_from_raw(identity: ContestantIdentity) -> str:
    """Surname taken from the raw spelling.

    "Surname, Given" puts the surname before the comma; otherwise the last
    word is used, skipping a generational suffix such as "Jr".
    """

    raw = _FLAG_RE.sub("", _PAREN_RE.sub("", identity.raw_name or ""))
    if "," in raw:
        head = raw.split(",", 1)[0]
        tokens = _alpha_tokens(head)
    else:
        tokens = _alpha_tokens(raw)
    while len(tokens) > 1 and tokens[-1] in _GENERATIONAL_SUFFIXES:
        tokens.pop()
    return tokens[-1] if tokens else ""


def last_sorted_token(identity: ContestantIdentity) -> str:
    """Last token of the sorted key; kept for parity with historical matches."""

    tokens = identity.tokens
    return tokens[-1] if tokens else ""


def keys_match(key_a: str, key_b: str) -> bool:
    """Two-tier comparison on bare keys: equality, then last sorted token."""

    if not key_a or not key_b:
        return False
    if key_a == key_b:
        return True
    return key_a.split(" ")[-1] == key_b.split(" ")[-1]


class IdentityNormalizer:
    """Normalizes raw names and decides whether two of them are one player."""

    def __init__(
        self,
        surname_strategy: SurnameStrategy = surname_from_raw,
        overrides: Dict[str, str] | None = None,
    ) -> None:
        self._surname = surname_strategy
        self._overrides = {normalize(k): v for k, v in (overrides or {}).items()}

    def normalize(self, raw_name: str) -> str:
        key = normalize(raw_name)
        if key in self._overrides:
            return normalize(self._overrides[key])
        return key

    def identify(self, raw_name: str) -> ContestantIdentity:
        return ContestantIdentity(raw_name=raw_name, normalized_key=self.normalize(raw_name))

    def update(self, mapping: Dict[str, str]) -> None:
        for raw, canonical in mapping.items():
            self._overrides[normalize(raw)] = canonical

    def surname(self, identity: ContestantIdentity) -> str:
        return self._surname(identity)

    def exact(self, a: ContestantIdentity, b: ContestantIdentity) -> bool:
        return bool(a.normalized_key) and a.normalized_key == b.normalized_key

    def by_surname(self, a: ContestantIdentity, b: ContestantIdentity) -> bool:
        surname = self._surname(a)
        return bool(surname) and surname == self._surname(b)

    def match(self, a: ContestantIdentity, b: ContestantIdentity) -> bool:
        return self.exact(a, b) or self.by_surname(a, b)


class IdentityMatcher:
    """Two-stage lookup of contestants across datasets.

    An exact key match anywhere in the candidate list always wins; the
    surname fallback is consulted only when no exact match exists, and then
    the first candidate in iteration order is taken.
    """

    def __init__(self, normalizer: Optional[IdentityNormalizer] = None) -> None:
        self.normalizer = normalizer or IdentityNormalizer()

    def find(
        self,
        raw_name: str,
        candidates: Sequence[T],
        name_of: Callable[[T], str] = str,
    ) -> Optional[T]:
        target = self.normalizer.identify(raw_name)
        identities = [self.normalizer.identify(name_of(candidate)) for candidate in candidates]
        for candidate, identity in zip(candidates, identities):
            if self.normalizer.exact(target, identity):
                return candidate
        for candidate, identity in zip(candidates, identities):
            if self.normalizer.by_surname(target, identity):
                return candidate
        return None

    def group(
        self,
        names: Iterable[str],
        sources: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> List[List[str]]:
        """Group raw spellings into one list per contestant, in first-seen order.

        Spellings with equal keys always share a group.  Two key groups are
        joined on surname only when each is the other's sole surname
        candidate.  ``sources`` maps a spelling to the feeds that carried it;
        a feed lists each contestant once, so key groups seen in the same
        feed are never joined.
        """

        sources = sources or {}
        buckets: List[_KeyBucket] = []
        by_key: Dict[str, int] = {}
        placed: List[Tuple[str, int]] = []
        for raw in names:
            identity = self.normalizer.identify(raw)
            key = identity.normalized_key
            index = by_key.get(key) if key else None
            if index is None:
                index = len(buckets)
                buckets.append(_KeyBucket())
                if key:
                    by_key[key] = index
            buckets[index].identities.append(identity)
            buckets[index].sources.update(sources.get(raw, ()))
            placed.append((raw, index))

        candidates = [self._surname_candidates(index, buckets) for index in range(len(buckets))]
        head = list(range(len(buckets)))
        for index, found in enumerate(candidates):
            if len(found) == 1 and candidates[found[0]] == [index]:
                head[index] = min(index, found[0])

        groups: List[List[str]] = []
        position: Dict[int, int] = {}
        for raw, index in placed:
            if head[index] not in position:
                position[head[index]] = len(groups)
                groups.append([])
            groups[position[head[index]]].append(raw)
        return groups

    def _surname_candidates(self, index: int, buckets: List["_KeyBucket"]) -> List[int]:
        bucket = buckets[index]
        found: List[int] = []
        for other_index, other in enumerate(buckets):
            if other_index == index or bucket.sources & other.sources:
                continue
            if any(
                self.normalizer.by_surname(a, b)
                for a in bucket.identities
                for b in other.identities
            ):
                found.append(other_index)
        return found


@dataclass
class _KeyBucket:
    identities: List[ContestantIdentity] = field(default_factory=list)
    sources: Set[str] = field(default_factory=set)


def _fold_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _alpha_tokens(value: str) -> List[str]:
    folded = _NON_ALPHA_RE.sub("", _fold_accents(value).lower())
    return [token for token in folded.split() if token]


@lru_cache(maxsize=512)
def _squash_whitespace(value: str) -> str:
    return re.sub(r"\s+", " ", value.strip())
