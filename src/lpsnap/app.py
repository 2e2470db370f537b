"""Application orchestration entry points."""

from __future__ import annotations

import base64
import json
import mimetypes
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, cast

from lpsnap.adapters.resilient_store import ResilientTableStore
from lpsnap.adapters.snapshot import SnapshotTextExtractor
from lpsnap.adapters.sqlalchemy import SqlAlchemyTableStore, create_all_tables, create_store_engine
from lpsnap.config import StoreConfig, get_database_config, get_store_config
from lpsnap.domain.model.rows import capture_from_row
from lpsnap.domain.quality import QualityControlPipeline
from lpsnap.domain.reconciliation import (
    PositionCache,
    prune_captures,
    summarize_positions,
)
from lpsnap.domain.reconciliation.ingest import CaptureIngestor

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from sqlalchemy.engine import Engine

    from lpsnap.domain.model import Capture, PositionRecord
    from lpsnap.domain.ports import TableStore, TextPatternExtractor, VisionExtractor
    from lpsnap.domain.quality import QCReport
    from lpsnap.domain.reconciliation import PositionSummary
    from lpsnap.domain.reconciliation.ingest import IngestReport

log = getLogger(__name__)


@dataclass(slots=True)
class Services:
    """Wired collaborators sharing one store and one cache."""

    store: TableStore
    cache: PositionCache
    quality: QualityControlPipeline
    ingestor: CaptureIngestor
    config: StoreConfig
    engine: Engine | None = None

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()


def build_services(
    *,
    engine: Engine | None = None,
    store: TableStore | None = None,
    store_config: StoreConfig | None = None,
    text_extractor: TextPatternExtractor | None = None,
    vision_extractor: VisionExtractor | None = None,
) -> Services:
    """Wire the store, cache, quality pipeline and ingestor.

    Without an explicit ``store`` a SQLAlchemy store is created on ``engine`` (or the
    configured database) and wrapped with transient-error retries.
    """

    config = store_config or get_store_config()
    if store is None:
        if engine is None:
            database = get_database_config()
            engine = create_store_engine(database.uri, echo=database.echo)
        create_all_tables(engine)
        store = ResilientTableStore(
            SqlAlchemyTableStore(
                engine,
                max_concurrency=config.max_concurrency,
                default_timeout=config.timeout_seconds,
            ),
            policy=config.retry,
        )

    timeout = config.timeout_seconds
    cache = PositionCache(store, timeout=timeout)
    quality = QualityControlPipeline(store, cache=cache, timeout=timeout)
    ingestor = CaptureIngestor(
        store,
        cache,
        text_extractor=text_extractor or SnapshotTextExtractor(),
        vision_extractor=vision_extractor,
        quality=quality,
        timeout=timeout,
    )
    return Services(
        store=store,
        cache=cache,
        quality=quality,
        ingestor=ingestor,
        config=config,
        engine=engine,
    )


def read_capture_file(path: Path) -> Capture:
    """Load a capture envelope exported as JSON."""

    with path.open(encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict) or "id" not in payload:
        raise ValueError(f"{path} does not contain a capture object with an id")
    return capture_from_row(cast("dict[str, object]", payload))


def read_image_file(path: Path) -> str:
    """Return the image at ``path`` as a base64 data URL."""

    media_type = mimetypes.guess_type(path.name)[0] or "image/png"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


async def import_capture(
    services: Services,
    capture: Capture,
    *,
    image: str | None = None,
) -> IngestReport:
    log.info("Importing capture %s (%s)", capture.id, capture.protocol)
    return await services.ingestor.ingest(capture, image=image)


async def run_quality_control(services: Services, capture_id: str) -> QCReport:
    return await services.quality.run(capture_id)


async def run_quality_control_recent(services: Services, limit: int) -> list[QCReport]:
    return await services.quality.run_recent(limit)


async def latest_positions(
    services: Services,
    *,
    protocol: str | None = None,
) -> list[PositionRecord]:
    records = await services.cache.all()
    if protocol is None:
        return records
    wanted = protocol.strip().casefold()
    return [record for record in records if record.key.protocol.casefold() == wanted]


async def position_stats(services: Services) -> PositionSummary:
    return summarize_positions(await services.cache.all())


async def prune_old_captures(
    services: Services,
    *,
    days: float,
    now_provider: Callable[[], datetime] | None = None,
) -> int:
    if days < 0:
        raise ValueError("Retention days must be non-negative")
    now = now_provider() if now_provider is not None else datetime.now(UTC)
    cutoff = now - timedelta(days=days)
    return await prune_captures(
        services.store,
        services.cache,
        older_than=cutoff,
        timeout=services.config.timeout_seconds,
    )
