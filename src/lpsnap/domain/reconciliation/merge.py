"""Select the representative record among observations of one position.

Ranking, highest first:

1. completeness: both token amounts present
2. recency: latest ``captured_at``

A later capture can legitimately carry less detail than an earlier one (only one
position's breakdown is resolved per extraction cycle), so recency only breaks ties
inside a completeness tier. Remaining ties fall back to the store row id and then
to a fingerprint of the observation, which makes the ranking a total order: the
reduction is associative and independent of input order.
"""

from __future__ import annotations

from collections import defaultdict
from functools import reduce
from typing import TYPE_CHECKING

from lpsnap.domain.model import PositionRecord

from .pairs import DEFAULT_PAIR_MATCHER

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from lpsnap.domain.model import CanonicalKey, Observation

    from .pairs import PairMatcher

type RankKey = tuple[bool, datetime, int, tuple[str, ...]]


def rank(observation: Observation) -> RankKey:
    row_id = observation.row_id if observation.row_id is not None else -1
    return (observation.complete, observation.captured_at, row_id, _fingerprint(observation))


def better(left: Observation, right: Observation) -> Observation:
    """Return the higher ranked of two observations."""

    return right if rank(right) > rank(left) else left


def select(
    observations: Iterable[Observation],
    *,
    key: CanonicalKey | None = None,
    matcher: PairMatcher = DEFAULT_PAIR_MATCHER,
) -> PositionRecord | None:
    """Pick the representative observation, or ``None`` for an empty input.

    ``key`` defaults to the key derived from the winning observation's label.
    """

    winner = _fold(observations)
    if winner is None:
        return None
    resolved_key = key or matcher.canonical_key(winner.protocol, winner.raw_pair_label)
    return PositionRecord(key=resolved_key, observation=winner)


def group_by_key(
    observations: Iterable[tuple[CanonicalKey, Observation]],
) -> dict[CanonicalKey, list[Observation]]:
    grouped: defaultdict[CanonicalKey, list[Observation]] = defaultdict(list)
    for key, observation in observations:
        grouped[key].append(observation)
    return dict(grouped)


def select_all(
    keyed_observations: Iterable[tuple[CanonicalKey, Observation]],
) -> dict[CanonicalKey, PositionRecord]:
    """Select one record per key; keys without observations are omitted."""

    records: dict[CanonicalKey, PositionRecord] = {}
    for key, group in group_by_key(keyed_observations).items():
        record = select(group, key=key)
        if record is not None:
            records[key] = record
    return records


def _fold(observations: Iterable[Observation]) -> Observation | None:
    iterator = iter(observations)
    first = next(iterator, None)
    if first is None:
        return None
    return reduce(better, iterator, first)


def _fingerprint(observation: Observation) -> tuple[str, ...]:
    values = observation.fields.as_dict()
    return (
        str(observation.source),
        observation.raw_pair_label,
        observation.token0 or "",
        observation.token1 or "",
        observation.capture_id or "",
        *(repr(values[name]) for name in sorted(values)),
    )
