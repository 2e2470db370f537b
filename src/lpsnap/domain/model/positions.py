"""Position observations and the records selected from them."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .enums import ObservationSource

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True, kw_only=True)
class PositionFields:
    """Numeric readings of one position at capture time.

    Every value is optional: extraction sources report what they could read and
    leave the rest empty. Missing values are never estimated.
    """

    balance: float | None = None
    pending_yield: float | None = None
    apy: float | None = None
    range_min: float | None = None
    range_max: float | None = None
    current_price: float | None = None
    token0_amount: float | None = None
    token1_amount: float | None = None
    token0_value: float | None = None
    token1_value: float | None = None
    token0_percentage: float | None = None
    token1_percentage: float | None = None
    in_range: bool | None = None
    fee_tier: str | None = None
    network: str | None = None

    @property
    def has_token_amounts(self) -> bool:
        return self.token0_amount is not None and self.token1_amount is not None

    @property
    def has_token_values(self) -> bool:
        return self.token0_value is not None and self.token1_value is not None

    @property
    def has_percentages(self) -> bool:
        return self.token0_percentage is not None and self.token1_percentage is not None

    def as_dict(self) -> dict[str, float | bool | str | None]:
        return {item.name: getattr(self, item.name) for item in fields(self)}

    def overlay(self, other: PositionFields) -> PositionFields:
        """Return a copy where every value present in ``other`` replaces ours."""

        merged = self.as_dict()
        for name, value in other.as_dict().items():
            if value is not None:
                merged[name] = value
        return PositionFields(**merged)  # pyright: ignore[reportArgumentType]

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> PositionFields:
        known = {item.name for item in fields(cls)}
        return cls(**{name: value for name, value in values.items() if name in known})  # pyright: ignore[reportArgumentType]


@dataclass(frozen=True, slots=True)
class CanonicalKey:
    """Stable identity of a logical position: protocol plus normalized pair."""

    protocol: str
    pair: str

    def __str__(self) -> str:
        return f"{self.protocol}:{self.pair}"


@dataclass(frozen=True, slots=True, kw_only=True)
class Observation:
    """One source's reading of a position at a point in time."""

    protocol: str
    raw_pair_label: str
    captured_at: datetime
    fields: PositionFields = field(default_factory=PositionFields)
    source: ObservationSource = ObservationSource.TEXT_PATTERN
    token0: str | None = None
    token1: str | None = None
    capture_id: str | None = None
    row_id: int | None = None

    def __post_init__(self) -> None:
        if self.captured_at.tzinfo is None:
            raise ValueError("Observation timestamps must include timezone information")
        if self.captured_at.tzinfo is not UTC:
            object.__setattr__(self, "captured_at", self.captured_at.astimezone(UTC))

    @property
    def complete(self) -> bool:
        return self.fields.has_token_amounts


@dataclass(frozen=True, slots=True)
class PositionRecord:
    """The observation currently representing a canonical key."""

    key: CanonicalKey
    observation: Observation

    @property
    def complete(self) -> bool:
        return self.observation.complete

    @property
    def fields(self) -> PositionFields:
        return self.observation.fields

    @property
    def row_id(self) -> int | None:
        return self.observation.row_id

    @property
    def captured_at(self) -> datetime:
        return self.observation.captured_at

    @property
    def pair_label(self) -> str:
        return self.observation.raw_pair_label
