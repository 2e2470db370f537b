"""Pydantic models for the Anthropic Messages API and the model's JSON answer."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _parse_number(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip().replace(",", "").rstrip("%").strip()
        return stripped or None
    return value


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class VisionBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ContentBlock(VisionBaseModel):
    type: str
    text: str | None = None


class MessagesResponse(VisionBaseModel):
    id: str | None = None
    model: str | None = None
    content: list[ContentBlock] = Field(default_factory=list)
    stop_reason: str | None = None

    def first_text(self) -> str | None:
        for block in self.content:
            if block.type == "text" and block.text:
                return block.text
        return None


class ApiErrorDetail(VisionBaseModel):
    type: str
    message: str


class ApiErrorResponse(VisionBaseModel):
    type: Literal["error"]
    error: ApiErrorDetail


class VisionReading(VisionBaseModel):
    """Balance breakdown the model read off the screenshot."""

    pair: str
    token0: str | None = None
    token1: str | None = None
    token0_amount: float | None = Field(default=None, alias="token0Amount")
    token1_amount: float | None = Field(default=None, alias="token1Amount")
    token0_percentage: float | None = Field(default=None, alias="token0Percentage")
    token1_percentage: float | None = Field(default=None, alias="token1Percentage")

    _normalize_numbers = field_validator(
        "token0_amount",
        "token1_amount",
        "token0_percentage",
        "token1_percentage",
        mode="before",
    )(_parse_number)
    _normalize_tokens = field_validator("token0", "token1", mode="before")(_blank_to_none)


class VisionRefusal(VisionBaseModel):
    """Answer given when no breakdown is visible."""

    error: str
