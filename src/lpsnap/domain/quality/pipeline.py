"""Quality-control sweep over the positions written for one capture.

Stages:

1. validate the capture envelope; errors abort the sweep
2. detect issues in the capture's stored position rows
3. plan and apply repairs for auto-fixable issues
4. re-load and re-detect; the sweep succeeds iff no auto-fixable issue remains

Sweeps over the same capture are serialized; different captures run concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING
from weakref import WeakValueDictionary

from lpsnap.domain.model import PositionRecord, ProtocolCategory
from lpsnap.domain.model.rows import capture_from_row, observation_from_row
from lpsnap.domain.ports import OrderBy, StoreError, StoreFatalError, Table, eq
from lpsnap.domain.reconciliation.pairs import DEFAULT_PAIR_MATCHER

from .detect import detect_issues
from .fix import apply_fixes, plan_fixes
from .issues import QCReport, ValidationResult
from .validate import validate_capture

if TYPE_CHECKING:
    from lpsnap.domain.ports import TableStore
    from lpsnap.domain.reconciliation.cache import PositionCache
    from lpsnap.domain.reconciliation.pairs import PairMatcher

    from .issues import QCIssue

log = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 5


class QualityControlPipeline:
    def __init__(
        self,
        store: TableStore,
        *,
        cache: PositionCache | None = None,
        timeout: float | None = None,
        filed_under: ProtocolCategory = ProtocolCategory.CLM,
        matcher: PairMatcher = DEFAULT_PAIR_MATCHER,
    ) -> None:
        self._store = store
        self._cache = cache
        self._timeout = timeout
        self._filed_under = filed_under
        self._matcher = matcher
        self._locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()

    def _lock_for(self, capture_id: str) -> asyncio.Lock:
        lock = self._locks.get(capture_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[capture_id] = lock
        return lock

    async def run(self, capture_id: str) -> QCReport:
        """Run all four stages for ``capture_id``.

        Transient store failures propagate; a capture that cannot be loaded because of
        a fatal store error is reported as a validation failure.
        """

        lock = self._lock_for(capture_id)
        async with lock:
            return await self._run(capture_id)

    async def run_recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[QCReport]:
        """Sweep the ``limit`` most recent captures, each independently."""

        rows = await self._store.select(
            Table.CAPTURES,
            order=(OrderBy("timestamp", descending=True),),
            limit=limit,
            timeout=self._timeout,
        )
        capture_ids = [str(row["id"]) for row in rows]
        log.info("Running quality control on %s recent captures", len(capture_ids))
        reports = await asyncio.gather(*(self.run_reported(cid) for cid in capture_ids))
        passed = sum(1 for report in reports if report.success)
        log.info("Quality control passed for %s/%s captures", passed, len(reports))
        return list(reports)

    async def run_reported(self, capture_id: str) -> QCReport:
        """Like :meth:`run`, but a store failure becomes a failed report instead of raising."""

        try:
            return await self.run(capture_id)
        except StoreError as exc:
            log.error("Quality control for capture %s failed: %s", capture_id, exc)  # noqa: TRY400
            return QCReport(
                capture_id=capture_id,
                success=False,
                validation=ValidationResult(errors=(f"Store failure: {exc}",)),
                stage="store",
            )

    async def _run(self, capture_id: str) -> QCReport:
        validation = await self._validate(capture_id)
        for warning in validation.warnings:
            log.warning("Capture %s: %s", capture_id, warning)
        if not validation.valid:
            for error in validation.errors:
                log.error("Capture %s: %s", capture_id, error)
            return QCReport(
                capture_id=capture_id, success=False, validation=validation, stage="validation"
            )

        issues = detect_issues(await self._load_records(capture_id), filed_under=self._filed_under)
        _log_issues(capture_id, issues)

        fixes = await apply_fixes(
            self._store, plan_fixes(issues), cache=self._cache, timeout=self._timeout
        )

        remaining = detect_issues(
            await self._load_records(capture_id), filed_under=self._filed_under
        )
        success = not any(issue.auto_fixable for issue in remaining)
        report = QCReport(
            capture_id=capture_id,
            success=success,
            validation=validation,
            issues=tuple(issues),
            fixes=tuple(fixes),
            remaining=tuple(remaining),
        )
        log.info(
            "Quality control for capture %s: %s issues, %s fixed, %s remaining (%s)",
            capture_id,
            len(issues),
            report.fixed,
            len(remaining),
            "passed" if success else "needs attention",
        )
        return report

    async def _validate(self, capture_id: str) -> ValidationResult:
        try:
            rows = await self._store.select(
                Table.CAPTURES, (eq("id", capture_id),), limit=1, timeout=self._timeout
            )
        except StoreFatalError as exc:
            return ValidationResult(errors=(f"Failed to load capture: {exc}",))
        if not rows:
            return ValidationResult(errors=(f"Capture {capture_id} not found",))
        return validate_capture(capture_from_row(rows[0]))

    async def _load_records(self, capture_id: str) -> list[PositionRecord]:
        rows = await self._store.select(
            Table.POSITIONS,
            (eq("capture_id", capture_id),),
            order=(OrderBy("id"),),
            timeout=self._timeout,
        )
        records: list[PositionRecord] = []
        for row in rows:
            observation = observation_from_row(row)
            key = self._matcher.canonical_key(observation.protocol, observation.raw_pair_label)
            records.append(PositionRecord(key=key, observation=observation))
        return records


def _log_issues(capture_id: str, issues: list[QCIssue]) -> None:
    for issue in issues:
        log.warning(
            "Capture %s: %s %s on %s: %s",
            capture_id,
            issue.severity,
            issue.type,
            issue.key,
            issue.message,
        )
