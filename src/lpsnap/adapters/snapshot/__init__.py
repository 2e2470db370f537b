"""Text-pattern extraction from the page snapshot stored with a capture."""

from __future__ import annotations

from .schema import PositionPayload
from .translator import SnapshotTextExtractor, parse_position

__all__ = ["PositionPayload", "SnapshotTextExtractor", "parse_position"]
