"""Translate the page snapshot of a capture into text-pattern observations."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from lpsnap.domain.model import Observation, ObservationSource, PositionFields

from .schema import PositionPayload

if TYPE_CHECKING:
    from collections.abc import Mapping

    from lpsnap.domain.model import Capture
    from lpsnap.domain.ports import TextPatternExtractor

log = getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_position(
    payload: PositionPayload | Mapping[str, object],
    *,
    protocol: str,
    captured_at: datetime,
    capture_id: str | None = None,
) -> Observation:
    position = (
        payload if isinstance(payload, PositionPayload) else PositionPayload.model_validate(payload)
    )
    fields = PositionFields.from_mapping(
        position.model_dump(exclude={"pair", "token0", "token1", "captured_at"})
    )
    return Observation(
        protocol=protocol,
        raw_pair_label=position.pair,
        captured_at=_as_utc(position.captured_at or captured_at),
        fields=fields,
        source=ObservationSource.TEXT_PATTERN,
        token0=position.token0,
        token1=position.token1,
        capture_id=capture_id,
    )


class SnapshotTextExtractor:
    """Read ``data.content.clmPositions.positions`` from a capture.

    Positions that fail validation or carry no pair label are skipped with a
    warning; the rest of the capture is still extracted.
    """

    def __call__(self, capture: Capture) -> list[Observation]:
        if not capture.protocol or capture.timestamp is None:
            log.warning("Capture %s has no protocol or timestamp; nothing extracted", capture.id)
            return []
        section = capture.clm_positions
        if section is None:
            return []

        raw_positions = section.get("positions")
        if not isinstance(raw_positions, list):
            log.warning("Capture %s has no position list", capture.id)
            return []

        observations: list[Observation] = []
        for index, raw in enumerate(raw_positions):  # pyright: ignore[reportUnknownVariableType, reportUnknownArgumentType]
            try:
                payload = PositionPayload.model_validate(raw)
            except ValidationError as exc:
                log.warning("Skipping position %s of capture %s: %s", index, capture.id, exc)
                continue
            if not payload.pair:
                log.warning("Skipping position %s of capture %s: empty pair", index, capture.id)
                continue
            observations.append(
                parse_position(
                    payload,
                    protocol=capture.protocol,
                    captured_at=capture.timestamp,
                    capture_id=capture.id,
                )
            )
        return observations


if TYPE_CHECKING:
    _extractor_check: TextPatternExtractor = SnapshotTextExtractor()
