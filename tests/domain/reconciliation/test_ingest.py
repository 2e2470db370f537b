from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from lpsnap.domain.model import CanonicalKey, ObservationSource
from lpsnap.domain.ports import (
    StoreFatalError,
    StoreTransientError,
    Table,
    VisionExtractionError,
)
from lpsnap.domain.quality import IssueType, QualityControlPipeline
from lpsnap.domain.reconciliation.ingest import CaptureIngestor, IngestReport
from tests.helpers.positions import at, make_capture, make_observation
from tests.support.extractors import ScriptedVisionExtractor, StaticTextExtractor

if TYPE_CHECKING:
    from collections.abc import Mapping

    from lpsnap.domain.model import Observation
    from lpsnap.domain.ports import StoreError
    from lpsnap.domain.reconciliation import PositionCache
    from tests.support.store import InMemoryTableStore

SOL = CanonicalKey("Orca", "SOL/USDC")
IMAGE = "data:image/png;base64,aGVsbG8="


def _ingestor(
    store: InMemoryTableStore,
    cache: PositionCache,
    observations: list[Observation],
    *,
    vision: ScriptedVisionExtractor | None = None,
    quality: QualityControlPipeline | None = None,
) -> CaptureIngestor:
    return CaptureIngestor(
        store,
        cache,
        text_extractor=StaticTextExtractor(observations),
        vision_extractor=vision,
        quality=quality,
        timeout=1.0,
    )


def _vision_reading(pair: str, **values: object) -> Observation:
    return make_observation(
        pair,
        captured_at=at(1),
        source=ObservationSource.VISION,
        token0=None,
        token1=None,
        capture_id=None,
        **values,
    )


def test_ingest_stores_capture_and_positions(
    store: InMemoryTableStore, cache: PositionCache
) -> None:
    observations = [
        make_observation("SOL/USDC0", capture_id="elsewhere", row_id=77, balance=1000.0),
        make_observation("JLP/USDC", token0="JLP", balance=250.0),
    ]
    ingestor = _ingestor(store, cache, observations)

    async def scenario() -> IngestReport:
        assert await cache.all() == []
        report = await ingestor.ingest(make_capture("cap-9"))
        record = await cache.get(SOL)
        assert record is not None
        assert record.fields.balance == 1000.0
        return report

    report = asyncio.run(scenario())

    assert report == IngestReport(capture_id="cap-9", attempted=2, saved=2)
    assert [row["id"] for row in store.rows[Table.CAPTURES]] == ["cap-9"]
    positions = store.rows[Table.POSITIONS]
    assert [row["capture_id"] for row in positions] == ["cap-9", "cap-9"]
    assert [row["pair"] for row in positions] == ["SOL/USDC0", "JLP/USDC"]
    assert [row["pair_key"] for row in positions] == ["SOL/USDC", "JLP/USDC"]
    assert set(store.timeouts) == {1.0}


def test_capture_insert_failure_propagates(
    store: InMemoryTableStore, cache: PositionCache
) -> None:
    store.fail_next("insert", StoreFatalError("duplicate key"))
    ingestor = _ingestor(store, cache, [make_observation()])

    with pytest.raises(StoreFatalError):
        asyncio.run(ingestor.ingest(make_capture()))

    assert store.rows[Table.POSITIONS] == []


def test_position_failure_is_recorded_and_batch_continues(
    store: InMemoryTableStore, cache: PositionCache
) -> None:
    def fail_jlp(table: Table, record: Mapping[str, object]) -> StoreError | None:
        if table is Table.POSITIONS and record["pair"] == "JLP/USDC":
            return StoreTransientError("connection reset")
        return None

    store.insert_error = fail_jlp
    observations = [
        make_observation("JLP/USDC", token0="JLP"),
        make_observation("SOL/USDC"),
    ]

    report = asyncio.run(_ingestor(store, cache, observations).ingest(make_capture()))

    assert report.attempted == 2
    assert report.saved == 1
    assert [(item.pair_label, item.error) for item in report.failures] == [
        ("JLP/USDC", "connection reset")
    ]
    assert [row["pair"] for row in store.rows[Table.POSITIONS]] == ["SOL/USDC"]


def test_vision_reading_overlays_matched_observation(
    store: InMemoryTableStore, cache: PositionCache
) -> None:
    text = make_observation("SOL/USDC0", balance=1000.0, apy=12.0)
    reading = _vision_reading(
        "USDC/SOL", token0_amount=2.5, token1_amount=500.0, token0_value=500.0
    )
    vision = ScriptedVisionExtractor([reading])
    ingestor = _ingestor(store, cache, [text], vision=vision)

    async def scenario() -> IngestReport:
        report = await ingestor.ingest(make_capture(), image=IMAGE)
        record = await cache.get(SOL)
        assert record is not None
        assert record.observation.source is ObservationSource.VISION
        assert record.complete is True
        return report

    report = asyncio.run(scenario())

    assert vision.calls == [(IMAGE, "cap-1", ("SOL/USDC0",))]
    assert report.saved == 2
    assert report.vision_applied == 1
    assert report.unresolved == []
    overlay = store.rows[Table.POSITIONS][1]
    assert overlay["pair"] == "SOL/USDC0"
    assert overlay["source"] == "vision"
    assert overlay["token0"] == "SOL"
    assert overlay["balance"] == 1000.0
    assert overlay["apy"] == 12.0
    assert overlay["token0_amount"] == 2.5
    assert overlay["token1_value"] is None
    assert overlay["captured_at"] == at(1)


def test_unresolved_vision_reading_is_dropped(
    store: InMemoryTableStore, cache: PositionCache
) -> None:
    vision = ScriptedVisionExtractor([_vision_reading("BONK/SOL", token0_amount=1.0)])
    ingestor = _ingestor(store, cache, [make_observation()], vision=vision)

    report = asyncio.run(ingestor.ingest(make_capture(), image=IMAGE))

    assert report.unresolved == ["BONK/SOL"]
    assert report.vision_applied == 0
    assert len(store.rows[Table.POSITIONS]) == 1


def test_vision_failure_keeps_text_observations(
    store: InMemoryTableStore, cache: PositionCache
) -> None:
    vision = ScriptedVisionExtractor(error=VisionExtractionError("overloaded"))
    ingestor = _ingestor(store, cache, [make_observation()], vision=vision)

    report = asyncio.run(ingestor.ingest(make_capture(), image=IMAGE))

    assert len(vision.calls) == 1
    assert report.saved == 1
    assert report.vision_applied == 0


def test_vision_is_skipped_without_image_or_known_pairs(
    store: InMemoryTableStore, cache: PositionCache
) -> None:
    vision = ScriptedVisionExtractor([_vision_reading("SOL/USDC", token0_amount=1.0)])

    asyncio.run(_ingestor(store, cache, [make_observation()], vision=vision).ingest(make_capture()))
    asyncio.run(
        _ingestor(store, cache, [], vision=vision).ingest(make_capture("cap-2"), image=IMAGE)
    )

    assert vision.calls == []


def test_quality_control_runs_after_saving(
    store: InMemoryTableStore, cache: PositionCache
) -> None:
    quality = QualityControlPipeline(store, cache=cache, timeout=1.0)
    observations = [make_observation("SOL/USDC", token0=None, token1=None)]

    report = asyncio.run(
        _ingestor(store, cache, observations, quality=quality).ingest(make_capture())
    )

    assert report.qc is not None
    assert report.qc.success is True
    assert [issue.type for issue in report.qc.issues] == [IssueType.MISSING_TOKEN_NAMES]
    assert report.qc.fixed == 1
    row = store.rows[Table.POSITIONS][0]
    assert (row["token0"], row["token1"]) == ("SOL", "USDC")


def test_quality_control_is_skipped_when_nothing_was_saved(
    store: InMemoryTableStore, cache: PositionCache
) -> None:
    quality = QualityControlPipeline(store, cache=cache)

    report = asyncio.run(_ingestor(store, cache, [], quality=quality).ingest(make_capture()))

    assert report.qc is None
    assert report.attempted == 0


def test_quality_control_store_failure_is_reported(
    store: InMemoryTableStore, cache: PositionCache
) -> None:
    quality = QualityControlPipeline(store, cache=cache, timeout=1.0)
    position_reads = 0

    async def fail_reload(table: Table) -> None:
        nonlocal position_reads
        if table is Table.POSITIONS:
            position_reads += 1
            if position_reads == 2:
                raise StoreTransientError("database is locked")

    store.select_hook = fail_reload
    observations = [make_observation("SOL/USDC", token0=None, token1=None)]

    report = asyncio.run(
        _ingestor(store, cache, observations, quality=quality).ingest(make_capture())
    )

    assert (report.attempted, report.saved) == (1, 1)
    assert report.qc is not None
    assert report.qc.success is False
    assert report.qc.stage == "store"
    assert "database is locked" in report.qc.validation.errors[0]


def test_invalid_capture_without_positions_reports_validation_errors(
    store: InMemoryTableStore, cache: PositionCache
) -> None:
    quality = QualityControlPipeline(store, cache=cache)

    report = asyncio.run(
        _ingestor(store, cache, [], quality=quality).ingest(
            make_capture(protocol=None, timestamp=None)
        )
    )

    assert report.saved == 0
    assert report.qc is not None
    assert report.qc.success is False
    assert report.qc.stage == "validation"
    assert report.qc.validation.errors == ("Missing protocol", "Missing timestamp")
    assert store.count("select") == 0
