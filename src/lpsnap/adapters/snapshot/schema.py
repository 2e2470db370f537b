"""Pydantic models describing the page snapshot embedded in a capture."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _parse_number(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip().replace(",", "").replace("$", "").rstrip("%").strip()
        return stripped or None
    return value


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, int | float) and not isinstance(value, bool):
        return f"{value:g}"
    return value


class SnapshotBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PositionPayload(SnapshotBaseModel):
    pair: str
    token0: str | None = None
    token1: str | None = None
    balance: float | None = None
    pending_yield: float | None = Field(default=None, alias="pendingYield")
    apy: float | None = None
    range_min: float | None = Field(default=None, alias="rangeMin")
    range_max: float | None = Field(default=None, alias="rangeMax")
    current_price: float | None = Field(default=None, alias="currentPrice")
    in_range: bool | None = Field(default=None, alias="inRange")
    fee_tier: str | None = Field(default=None, alias="feeTier")
    network: str | None = None
    token0_amount: float | None = Field(default=None, alias="token0Amount")
    token1_amount: float | None = Field(default=None, alias="token1Amount")
    token0_value: float | None = Field(default=None, alias="token0Value")
    token1_value: float | None = Field(default=None, alias="token1Value")
    token0_percentage: float | None = Field(default=None, alias="token0Percentage")
    token1_percentage: float | None = Field(default=None, alias="token1Percentage")
    captured_at: datetime | None = Field(default=None, alias="capturedAt")

    _normalize_numbers = field_validator(
        "balance",
        "pending_yield",
        "apy",
        "range_min",
        "range_max",
        "current_price",
        "token0_amount",
        "token1_amount",
        "token0_value",
        "token1_value",
        "token0_percentage",
        "token1_percentage",
        mode="before",
    )(_parse_number)
    _normalize_text = field_validator(
        "token0", "token1", "fee_tier", "network", mode="before"
    )(_blank_to_none)

    @field_validator("pair", mode="before")
    @classmethod
    def _strip_pair(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value
