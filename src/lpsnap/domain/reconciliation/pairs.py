"""Normalization and matching of token pair labels across extraction sources.

Sources disagree on how a pair is written: the DOM extractor reports ``SOL/USDC0``
where the vision model reads ``USDC/SOL``, OCR turns ``JLP`` into ``JPL``, and
wrapped or bridged tokens show up under their wrapper symbol. ``PairMatcher``
folds those variants together and resolves an extracted label against the labels
already known for a capture:

1. exact match of the normalized labels
2. reversed match (``token1/token0``)
3. fuzzy match within a small Levenshtein distance

Matching fails closed: when no candidate qualifies nothing is returned and the
caller must drop the observation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Final

from lpsnap.domain.model import CanonicalKey

log = logging.getLogger(__name__)

PAIR_SEPARATOR: Final[str] = "/"
DEFAULT_MAX_DISTANCE: Final[int] = 2

TOKEN_ALIASES: Final[Mapping[str, str]] = MappingProxyType(
    {
        # wrapped / bridged BTC
        "WBTC": "BTC",
        "XBTC": "BTC",
        "CBBTC": "BTC",
        # wrapped / staked ETH
        "WETH": "ETH",
        "WHETH": "ETH",
        "STETH": "ETH",
        "WSTETH": "ETH",
        # bridged USDC
        "USDC.E": "USDC",
        "USDBC": "USDC",
        # OCR confusions
        "JPL": "JLP",
        "JLF": "JLP",
    }
)


class MatchKind(StrEnum):
    """How an extracted label was matched to a candidate."""

    EXACT = "exact"
    REVERSED = "reversed"
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class PairMatch[T]:
    candidate: T
    kind: MatchKind
    distance: int = 0


class UnresolvedMatchError(LookupError):
    """Raised when an extracted label matches none of the known candidates."""

    def __init__(self, label: str, candidates: Sequence[str]) -> None:
        self.label = label
        self.candidates = tuple(candidates)
        known = ", ".join(self.candidates) or "<none>"
        super().__init__(f"No candidate matches pair {label!r} (known: {known})")


def split_pair(label: str | None) -> tuple[str, str] | None:
    """Return the trimmed tokens of a two-token pair label."""

    if not label:
        return None
    parts = label.split(PAIR_SEPARATOR)
    if len(parts) != 2:  # noqa: PLR2004
        return None
    return parts[0].strip(), parts[1].strip()


def levenshtein(left: str, right: str) -> int:
    """Edit distance with unit cost for insert, delete and substitute."""

    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)

    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            substitution = previous[j - 1] + (left_char != right_char)
            current.append(min(substitution, previous[j] + 1, current[j - 1] + 1))
        previous = current
    return previous[-1]


@dataclass(frozen=True, slots=True, kw_only=True)
class PairMatcher:
    """Normalize pair labels and match them against known candidates."""

    aliases: Mapping[str, str] = field(default_factory=lambda: TOKEN_ALIASES)
    max_distance: int = DEFAULT_MAX_DISTANCE

    def normalize_token(self, token: str) -> str:
        normalized = token.strip().upper().rstrip("0")
        return self.aliases.get(normalized, normalized)

    def normalize(self, label: str) -> str:
        tokens = split_pair(label)
        if tokens is None:
            return label.strip().upper()
        token0, token1 = tokens
        return f"{self.normalize_token(token0)}{PAIR_SEPARATOR}{self.normalize_token(token1)}"

    def match[T](
        self,
        extracted: str,
        candidates: Sequence[T],
        *,
        label: Callable[[T], str] = str,
    ) -> PairMatch[T] | None:
        """Resolve ``extracted`` to one of ``candidates`` or return ``None``."""

        target = self.normalize(extracted)
        normalized = [self.normalize(label(candidate)) for candidate in candidates]

        for candidate, candidate_pair in zip(candidates, normalized, strict=True):
            if candidate_pair == target:
                return PairMatch(candidate, MatchKind.EXACT)

        target_tokens = split_pair(target)
        if target_tokens is None:
            return None

        reversed_target = f"{target_tokens[1]}{PAIR_SEPARATOR}{target_tokens[0]}"
        for candidate, candidate_pair in zip(candidates, normalized, strict=True):
            if candidate_pair == reversed_target:
                return PairMatch(candidate, MatchKind.REVERSED)

        best: PairMatch[T] | None = None
        for candidate, candidate_pair in zip(candidates, normalized, strict=True):
            if split_pair(candidate_pair) is None:
                continue
            distance = levenshtein(target, candidate_pair)
            if not 0 < distance <= self.max_distance:
                continue
            if best is None or distance < best.distance:
                best = PairMatch(candidate, MatchKind.FUZZY, distance)
        return best

    def require_match[T](
        self,
        extracted: str,
        candidates: Sequence[T],
        *,
        label: Callable[[T], str] = str,
    ) -> PairMatch[T]:
        result = self.match(extracted, candidates, label=label)
        if result is None:
            raise UnresolvedMatchError(extracted, [label(candidate) for candidate in candidates])
        log.debug(
            "Matched pair %r to %r (%s, distance=%s)",
            extracted,
            label(result.candidate),
            result.kind,
            result.distance,
        )
        return result

    def canonical_key(self, protocol: str, label: str) -> CanonicalKey:
        return CanonicalKey(protocol=protocol.strip(), pair=self.normalize(label))


DEFAULT_PAIR_MATCHER: Final[PairMatcher] = PairMatcher()


def normalize_pair(label: str) -> str:
    return DEFAULT_PAIR_MATCHER.normalize(label)


def canonical_key(protocol: str, label: str) -> CanonicalKey:
    return DEFAULT_PAIR_MATCHER.canonical_key(protocol, label)
