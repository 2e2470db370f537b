"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ObservationSource(StrEnum):
    """Extraction source that produced an observation."""

    TEXT_PATTERN = "text_pattern"
    VISION = "vision"


class ProtocolCategory(StrEnum):
    """Dashboard section a protocol's positions are filed under."""

    CLM = "clm"
    HEDGE = "hedge"
