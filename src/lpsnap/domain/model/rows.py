"""Translate domain objects to and from table store rows."""

from __future__ import annotations

from dataclasses import fields
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final, cast

from .captures import Capture
from .enums import ObservationSource
from .positions import Observation, PositionFields

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .positions import CanonicalKey

type Row = dict[str, object]

FIELD_COLUMNS: Final[tuple[str, ...]] = tuple(item.name for item in fields(PositionFields))


def observation_to_row(observation: Observation, key: CanonicalKey) -> Row:
    """Row for the ``positions`` table; ``pair_key`` stores the canonical pair."""

    row: Row = {
        "capture_id": observation.capture_id,
        "protocol": observation.protocol,
        "pair": observation.raw_pair_label,
        "pair_key": key.pair,
        "token0": observation.token0,
        "token1": observation.token1,
        "source": str(observation.source),
        "captured_at": observation.captured_at,
    }
    row.update(observation.fields.as_dict())
    return row


def observation_from_row(row: Mapping[str, object]) -> Observation:
    values = {name: row.get(name) for name in FIELD_COLUMNS}
    return Observation(
        protocol=_required_str(row, "protocol"),
        raw_pair_label=_required_str(row, "pair"),
        captured_at=_as_utc(row.get("captured_at")),
        fields=PositionFields.from_mapping(_coerce_numbers(values)),
        source=ObservationSource(str(row.get("source") or ObservationSource.TEXT_PATTERN)),
        token0=_optional_str(row.get("token0")),
        token1=_optional_str(row.get("token1")),
        capture_id=_optional_str(row.get("capture_id")),
        row_id=_optional_int(row.get("id")),
    )


def capture_to_row(capture: Capture) -> Row:
    return {
        "id": capture.id,
        "url": capture.url,
        "title": capture.title,
        "timestamp": capture.timestamp,
        "protocol": capture.protocol,
        "data": dict(capture.data) if capture.data is not None else None,
        "screenshot": capture.screenshot,
    }


def capture_from_row(row: Mapping[str, object]) -> Capture:
    data = row.get("data")
    timestamp = row.get("timestamp")
    return Capture(
        id=_required_str(row, "id"),
        protocol=_optional_str(row.get("protocol")),
        timestamp=_as_utc(timestamp) if timestamp is not None else None,
        url=_optional_str(row.get("url")),
        title=_optional_str(row.get("title")),
        data=cast("Mapping[str, object]", data) if isinstance(data, dict) else None,
        screenshot=_optional_str(row.get("screenshot")),
    )


def _coerce_numbers(values: dict[str, object]) -> dict[str, object]:
    coerced: dict[str, object] = {}
    for name, value in values.items():
        if name in {"in_range", "fee_tier", "network"} or value is None:
            coerced[name] = value
        elif isinstance(value, int | float):
            coerced[name] = float(value)
        else:
            coerced[name] = float(str(value))
    if coerced.get("in_range") is not None:
        coerced["in_range"] = bool(coerced["in_range"])
    return coerced


def _as_utc(value: object) -> datetime:
    if isinstance(value, str):
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        value = datetime.fromisoformat(normalized)
    if not isinstance(value, datetime):
        raise ValueError(f"Expected a timestamp, got {value!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _required_str(row: Mapping[str, object], column: str) -> str:
    value = row.get(column)
    if value is None:
        raise ValueError(f"Row is missing required column {column!r}")
    return str(value)


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)


def _optional_int(value: object) -> int | None:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(str(value))
