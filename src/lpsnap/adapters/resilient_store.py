"""Retrying wrapper around a table store.

Only ``StoreTransientError`` is retried, with exponential backoff and jitter.
Fatal errors and the last transient error propagate unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from lpsnap.config.store import StoreRetryPolicy
from lpsnap.domain.ports import StoreTransientError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from lpsnap.domain.model.rows import Row
    from lpsnap.domain.ports import OrderBy, Predicate, Table, TableStore

log = logging.getLogger(__name__)

type Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(policy: StoreRetryPolicy, retry: int, *, jitter: float = 0.0) -> float:
    """Delay before retry number ``retry`` (1-based), capped at ``max_backoff_wait``."""

    delay = policy.backoff_factor * (2 ** (retry - 1)) + jitter
    return min(delay, policy.max_backoff_wait)


class ResilientTableStore:
    def __init__(
        self,
        inner: TableStore,
        *,
        policy: StoreRetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._inner = inner
        self._policy = policy or StoreRetryPolicy()
        self._sleep = sleep
        self._rng = rng or random.Random()  # noqa: S311

    @property
    def inner(self) -> TableStore:
        return self._inner

    async def insert(
        self,
        table: Table,
        record: Mapping[str, object],
        *,
        timeout: float | None = None,
    ) -> Row:
        return await self._call(
            f"insert into {table}",
            lambda: self._inner.insert(table, record, timeout=timeout),
        )

    async def update(
        self,
        table: Table,
        predicate: Predicate,
        patch: Mapping[str, object],
        *,
        timeout: float | None = None,
    ) -> int:
        return await self._call(
            f"update {table}",
            lambda: self._inner.update(table, predicate, patch, timeout=timeout),
        )

    async def select(
        self,
        table: Table,
        predicate: Predicate = (),
        *,
        order: Sequence[OrderBy] = (),
        limit: int | None = None,
        timeout: float | None = None,
    ) -> list[Row]:
        return await self._call(
            f"select from {table}",
            lambda: self._inner.select(table, predicate, order=order, limit=limit, timeout=timeout),
        )

    async def delete(
        self,
        table: Table,
        predicate: Predicate,
        *,
        timeout: float | None = None,
    ) -> int:
        return await self._call(
            f"delete from {table}",
            lambda: self._inner.delete(table, predicate, timeout=timeout),
        )

    async def _call[T](self, description: str, operation: Callable[[], Awaitable[T]]) -> T:
        retry = 0
        while True:
            try:
                return await operation()
            except StoreTransientError as exc:
                retry += 1
                if retry > self._policy.total:
                    log.error("Giving up on %s after %s retries: %s", description, retry - 1, exc)  # noqa: TRY400
                    raise
                jitter = self._rng.uniform(0, self._policy.backoff_jitter)
                delay = backoff_delay(self._policy, retry, jitter=jitter)
                log.warning(
                    "Transient store failure on %s (retry %s/%s in %.2fs): %s",
                    description,
                    retry,
                    self._policy.total,
                    delay,
                    exc,
                )
                await self._sleep(delay)
