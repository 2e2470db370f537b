"""Domain model for captured positions."""

from __future__ import annotations

from .captures import Capture
from .enums import ObservationSource, ProtocolCategory
from .positions import CanonicalKey, Observation, PositionFields, PositionRecord
from .protocols import CLM_PROTOCOLS, HEDGE_PROTOCOLS, category_for, is_known_protocol

__all__ = [
    "CLM_PROTOCOLS",
    "HEDGE_PROTOCOLS",
    "CanonicalKey",
    "Capture",
    "Observation",
    "ObservationSource",
    "PositionFields",
    "PositionRecord",
    "ProtocolCategory",
    "category_for",
    "is_known_protocol",
]
