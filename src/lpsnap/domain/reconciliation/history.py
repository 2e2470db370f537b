"""Capture history: listing recent captures and pruning old ones."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from lpsnap.domain.model.rows import capture_from_row
from lpsnap.domain.ports import OrderBy, Table, in_, lt

if TYPE_CHECKING:
    from datetime import datetime

    from lpsnap.domain.model import Capture
    from lpsnap.domain.ports import TableStore

    from .cache import PositionCache

log = logging.getLogger(__name__)


async def recent_captures(
    store: TableStore,
    limit: int,
    *,
    timeout: float | None = None,
) -> list[Capture]:
    rows = await store.select(
        Table.CAPTURES,
        order=(OrderBy("timestamp", descending=True),),
        limit=limit,
        timeout=timeout,
    )
    return [capture_from_row(row) for row in rows]


async def prune_captures(
    store: TableStore,
    cache: PositionCache,
    *,
    older_than: datetime,
    timeout: float | None = None,
) -> int:
    """Delete captures taken before ``older_than`` together with their positions.

    Returns the number of deleted captures. The cache is fully invalidated whenever
    anything was deleted.
    """

    rows = await store.select(Table.CAPTURES, (lt("timestamp", older_than),), timeout=timeout)
    capture_ids = [str(row["id"]) for row in rows]
    if not capture_ids:
        return 0

    positions = await store.delete(
        Table.POSITIONS, (in_("capture_id", capture_ids),), timeout=timeout
    )
    cache.invalidate_all()
    captures = await store.delete(Table.CAPTURES, (in_("id", capture_ids),), timeout=timeout)
    log.info(
        "Pruned %s captures and %s positions older than %s",
        captures,
        positions,
        older_than.isoformat(),
    )
    return captures
