"""Reconciliation of position observations into one record per logical position.

``ingest`` is not re-exported here; it depends on the quality package, which in turn
depends on ``pairs``.
"""

from __future__ import annotations

from .cache import PositionCache
from .history import prune_captures, recent_captures
from .merge import rank, select, select_all
from .pairs import (
    DEFAULT_PAIR_MATCHER,
    TOKEN_ALIASES,
    MatchKind,
    PairMatch,
    PairMatcher,
    UnresolvedMatchError,
    canonical_key,
    levenshtein,
    normalize_pair,
    split_pair,
)
from .stats import PositionSummary, summarize_positions

__all__ = [
    "DEFAULT_PAIR_MATCHER",
    "TOKEN_ALIASES",
    "MatchKind",
    "PairMatch",
    "PairMatcher",
    "PositionCache",
    "PositionSummary",
    "UnresolvedMatchError",
    "canonical_key",
    "levenshtein",
    "normalize_pair",
    "prune_captures",
    "rank",
    "recent_captures",
    "select",
    "select_all",
    "split_pair",
    "summarize_positions",
]
