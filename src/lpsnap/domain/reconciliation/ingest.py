"""Write path: persist a capture and the observations extracted from it.

Every written observation invalidates its canonical key in the position cache. A
failure writing one position is recorded on the report and does not abort the
batch. Vision readings are accepted only when their pair label resolves against
the text observations of the same capture; a resolved reading is stored as a new
observation overlaying the matched one, so values the model could not read are
taken from that same capture and never invented.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from lpsnap.domain.model import ObservationSource
from lpsnap.domain.model.rows import capture_to_row, observation_to_row
from lpsnap.domain.ports import StoreError, Table, VisionExtractionError
from lpsnap.domain.quality.issues import QCReport
from lpsnap.domain.quality.validate import validate_capture, validate_observation

from .pairs import DEFAULT_PAIR_MATCHER, UnresolvedMatchError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from lpsnap.domain.model import Capture, Observation
    from lpsnap.domain.ports import TableStore, TextPatternExtractor, VisionExtractor
    from lpsnap.domain.quality.pipeline import QualityControlPipeline

    from .cache import PositionCache
    from .pairs import PairMatcher

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IngestFailure:
    pair_label: str
    error: str


@dataclass(slots=True, kw_only=True)
class IngestReport:
    capture_id: str
    attempted: int = 0
    saved: int = 0
    failures: list[IngestFailure] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    vision_applied: int = 0
    qc: QCReport | None = None


class CaptureIngestor:
    def __init__(
        self,
        store: TableStore,
        cache: PositionCache,
        *,
        text_extractor: TextPatternExtractor,
        vision_extractor: VisionExtractor | None = None,
        quality: QualityControlPipeline | None = None,
        matcher: PairMatcher = DEFAULT_PAIR_MATCHER,
        timeout: float | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._text_extractor = text_extractor
        self._vision_extractor = vision_extractor
        self._quality = quality
        self._matcher = matcher
        self._timeout = timeout

    async def ingest(self, capture: Capture, *, image: str | None = None) -> IngestReport:
        """Store ``capture`` and its positions, then run quality control.

        The capture row is written first and a failure there propagates: positions
        reference it. Later store failures, quality control included, end up on the
        report. Without saved positions only the envelope is validated.
        """

        await self._store.insert(Table.CAPTURES, capture_to_row(capture), timeout=self._timeout)
        report = IngestReport(capture_id=capture.id)

        observations = [
            replace(observation, capture_id=capture.id, row_id=None)
            for observation in self._text_extractor(capture)
        ]
        log.info("Extracted %s positions from capture %s", len(observations), capture.id)
        for observation in observations:
            await self._save(observation, report)

        if image is not None and self._vision_extractor is not None:
            await self._apply_vision(self._vision_extractor, capture, image, observations, report)

        if self._quality is not None:
            report.qc = await self._check_quality(self._quality, capture, report)

        log.info(
            "Ingested capture %s: %s/%s positions saved, %s vision overlays, %s unresolved",
            capture.id,
            report.saved,
            report.attempted,
            report.vision_applied,
            len(report.unresolved),
        )
        return report

    async def _check_quality(
        self, quality: QualityControlPipeline, capture: Capture, report: IngestReport
    ) -> QCReport | None:
        if report.saved:
            return await quality.run_reported(capture.id)
        validation = validate_capture(capture)
        if validation.valid:
            return None
        log.warning(
            "Capture %s stored without positions: %s", capture.id, "; ".join(validation.errors)
        )
        return QCReport(
            capture_id=capture.id, success=False, validation=validation, stage="validation"
        )

    async def _apply_vision(
        self,
        extractor: VisionExtractor,
        capture: Capture,
        image: str,
        observations: Sequence[Observation],
        report: IngestReport,
    ) -> None:
        if not observations:
            log.info("Skipping vision extraction for capture %s: no known pairs", capture.id)
            return
        try:
            readings = await extractor(image, capture=capture, context=observations)
        except VisionExtractionError as exc:
            log.warning("Vision extraction failed for capture %s: %s", capture.id, exc)
            return

        for reading in readings:
            try:
                match = self._matcher.require_match(
                    reading.raw_pair_label,
                    observations,
                    label=lambda observation: observation.raw_pair_label,
                )
            except UnresolvedMatchError as exc:
                log.warning("Dropping vision reading for capture %s: %s", capture.id, exc)
                report.unresolved.append(reading.raw_pair_label)
                continue

            base = match.candidate
            overlay = replace(
                base,
                fields=base.fields.overlay(reading.fields),
                source=ObservationSource.VISION,
                captured_at=reading.captured_at,
                token0=reading.token0 or base.token0,
                token1=reading.token1 or base.token1,
            )
            if await self._save(overlay, report):
                report.vision_applied += 1

    async def _save(self, observation: Observation, report: IngestReport) -> bool:
        for warning in validate_observation(observation):
            log.warning("Capture %s: %s", observation.capture_id, warning)

        key = self._matcher.canonical_key(observation.protocol, observation.raw_pair_label)
        report.attempted += 1
        try:
            await self._store.insert(
                Table.POSITIONS, observation_to_row(observation, key), timeout=self._timeout
            )
        except StoreError as exc:
            log.error("Failed to save position %s: %s", key, exc)  # noqa: TRY400
            report.failures.append(IngestFailure(observation.raw_pair_label, str(exc)))
            return False
        self._cache.invalidate(key)
        report.saved += 1
        return True
