"""Stage 3: plan and apply deterministic repairs for auto-fixable issues.

Planning is pure and a plan applied twice leaves the same rows: token names are
taken from the stored pair label and percentages are recomputed from the stored
token values, never from previously written percentages.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Final

from lpsnap.domain.ports import StoreTransientError, Table, eq
from lpsnap.domain.reconciliation.pairs import split_pair

from .issues import FixResult, IssueType, PositionFix

if TYPE_CHECKING:
    from collections.abc import Iterable

    from lpsnap.domain.ports import TableStore
    from lpsnap.domain.reconciliation.cache import PositionCache

    from .issues import QCIssue

log = logging.getLogger(__name__)

PERCENT_STEP: Final[Decimal] = Decimal("0.1")


def round_percentage(value: float) -> float:
    """Round half-up to one decimal place."""

    return float(Decimal(str(value)).quantize(PERCENT_STEP, rounding=ROUND_HALF_UP))


def plan_fixes(issues: Iterable[QCIssue]) -> list[PositionFix]:
    fixes: list[PositionFix] = []
    for issue in issues:
        if not issue.auto_fixable or issue.row_id is None:
            continue
        patch = _patch_for(issue)
        if patch is None:
            continue
        fixes.append(
            PositionFix(issue_type=issue.type, row_id=issue.row_id, key=issue.key, patch=patch)
        )
    return fixes


def _patch_for(issue: QCIssue) -> dict[str, object] | None:
    match issue.type:
        case IssueType.MISSING_TOKEN_NAMES:
            tokens = split_pair(issue.position.pair_label)
            if tokens is None or not all(tokens):
                return None
            return {"token0": tokens[0], "token1": tokens[1]}
        case IssueType.INVALID_PERCENTAGES:
            values = issue.position.fields
            if values.token0_value is None or values.token1_value is None:
                return None
            total = values.token0_value + values.token1_value
            if total <= 0:
                return None
            return {
                "token0_percentage": round_percentage(values.token0_value / total * 100),
                "token1_percentage": round_percentage(values.token1_value / total * 100),
            }
        case _:
            return None


async def apply_fixes(
    store: TableStore,
    fixes: Iterable[PositionFix],
    *,
    cache: PositionCache | None = None,
    timeout: float | None = None,
) -> list[FixResult]:
    """Persist each fix with a row-scoped update.

    Transient store failures are recorded on the result and the remaining fixes are
    still attempted. Fatal store failures propagate.
    """

    results: list[FixResult] = []
    for fix in fixes:
        try:
            updated = await store.update(
                Table.POSITIONS, (eq("id", fix.row_id),), fix.patch, timeout=timeout
            )
        except StoreTransientError as exc:
            log.warning("Could not apply %s fix to row %s: %s", fix.issue_type, fix.row_id, exc)
            results.append(FixResult(fix=fix, applied=False, error=str(exc)))
            continue
        if cache is not None:
            cache.invalidate(fix.key)
        if updated == 0:
            log.warning("Position row %s vanished before its %s fix", fix.row_id, fix.issue_type)
            results.append(FixResult(fix=fix, applied=False, error="row not found"))
            continue
        log.info("Fixed %s on row %s (%s)", fix.issue_type, fix.row_id, fix.key)
        results.append(FixResult(fix=fix, applied=True))
    return results
