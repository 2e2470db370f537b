"""Portfolio summary over the selected position records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from lpsnap.domain.model import PositionRecord


@dataclass(frozen=True, slots=True, kw_only=True)
class PositionSummary:
    total_positions: int = 0
    in_range: int = 0
    out_of_range: int = 0
    total_value: float = 0.0
    total_pending_yield: float = 0.0
    average_apy: float | None = None
    protocols: tuple[str, ...] = ()
    pairs: tuple[str, ...] = ()


def summarize_positions(records: Iterable[PositionRecord]) -> PositionSummary:
    """Aggregate counts and totals; missing values are skipped, not counted as zero."""

    items = list(records)
    apys = [record.fields.apy for record in items if record.fields.apy is not None]
    return PositionSummary(
        total_positions=len(items),
        in_range=sum(1 for record in items if record.fields.in_range is True),
        out_of_range=sum(1 for record in items if record.fields.in_range is False),
        total_value=sum(record.fields.balance or 0.0 for record in items),
        total_pending_yield=sum(record.fields.pending_yield or 0.0 for record in items),
        average_apy=sum(apys) / len(apys) if apys else None,
        protocols=tuple(sorted({record.key.protocol for record in items})),
        pairs=tuple(sorted({record.key.pair for record in items})),
    )
