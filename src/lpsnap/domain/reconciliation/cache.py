"""Read-side cache of the selected record per canonical key.

The per-key map is the single source of truth. The list returned by ``all()`` is
derived from it and memoized against a version counter that every invalidation and
every installed rebuild bumps, so the two views can never disagree.

A rebuild reads every position row, groups by canonical key and selects one record
per key. Invalidations issued while a rebuild is in flight make that rebuild's
result stale; it is discarded and the rows are read again. Staleness is tracked by
a separate invalidation counter, so a rebuild finishing does not void another one
still in flight. Concurrent rebuilds are not deduplicated: each installs a
complete, consistent view and the last to finish wins.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from lpsnap.domain.model.rows import observation_from_row
from lpsnap.domain.ports import Table, utcnow

from .merge import select_all
from .pairs import DEFAULT_PAIR_MATCHER

if TYPE_CHECKING:
    from datetime import datetime

    from lpsnap.domain.model import CanonicalKey, PositionRecord
    from lpsnap.domain.ports import Clock, TableStore

    from .pairs import PairMatcher

log = logging.getLogger(__name__)


class PositionCache:
    """Cache of ``CanonicalKey -> PositionRecord`` backed by a table store."""

    def __init__(
        self,
        store: TableStore,
        *,
        timeout: float | None = None,
        clock: Clock = utcnow,
        matcher: PairMatcher = DEFAULT_PAIR_MATCHER,
    ) -> None:
        self._store = store
        self._timeout = timeout
        self._clock = clock
        self._matcher = matcher
        self._records: dict[CanonicalKey, PositionRecord] = {}
        self._stale_keys: set[CanonicalKey] = set()
        self._built = False
        self._version = 0
        self._invalidations = 0
        self._snapshot: tuple[int, list[PositionRecord]] | None = None
        self.built_at: datetime | None = None

    @property
    def version(self) -> int:
        return self._version

    def has_data(self) -> bool:
        return bool(self._records)

    async def get(self, key: CanonicalKey) -> PositionRecord | None:
        if not self._built or key in self._stale_keys:
            await self._rebuild()
        return self._records.get(key)

    async def all(self) -> list[PositionRecord]:
        """Every cached record, sorted by protocol and pair."""

        if not self._built or self._stale_keys:
            await self._rebuild()
        if self._snapshot is None or self._snapshot[0] != self._version:
            records = sorted(
                self._records.values(), key=lambda record: (record.key.protocol, record.key.pair)
            )
            self._snapshot = (self._version, records)
        return list(self._snapshot[1])

    def invalidate(self, key: CanonicalKey) -> None:
        self._records.pop(key, None)
        self._stale_keys.add(key)
        self._invalidations += 1
        self._bump()
        log.debug("Invalidated cached position %s", key)

    def invalidate_all(self) -> None:
        self._records.clear()
        self._stale_keys.clear()
        self._built = False
        self._invalidations += 1
        self._bump()
        log.debug("Invalidated all cached positions")

    def _bump(self) -> None:
        self._version += 1
        self._snapshot = None

    async def _rebuild(self) -> None:
        attempt = 1
        while True:
            started_at = self._invalidations
            records = await self._load()
            if self._invalidations == started_at:
                self._install(records)
                return
            log.debug(
                "Positions invalidated during cache rebuild (attempt %s), re-reading", attempt
            )
            attempt += 1

    async def _load(self) -> dict[CanonicalKey, PositionRecord]:
        rows = await self._store.select(Table.POSITIONS, timeout=self._timeout)
        keyed = []
        for row in rows:
            observation = observation_from_row(row)
            key = self._matcher.canonical_key(observation.protocol, observation.raw_pair_label)
            keyed.append((key, observation))
        return select_all(keyed)

    def _install(self, records: dict[CanonicalKey, PositionRecord]) -> None:
        self._records = records
        self._stale_keys = set()
        self._built = True
        self._bump()
        self.built_at = self._clock()
        log.debug("Rebuilt position cache with %s records", len(records))
