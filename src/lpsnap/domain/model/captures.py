"""Capture envelopes: one row per user-triggered capture event."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, cast

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


@dataclass(frozen=True, slots=True, kw_only=True)
class Capture:
    """Raw snapshot of one captured dashboard page.

    ``protocol``, ``timestamp`` and ``data`` are required for a capture to be
    processed further, but they are optional here so that malformed envelopes can
    still be represented and reported on.
    """

    id: str
    protocol: str | None = None
    timestamp: datetime | None = None
    url: str | None = None
    title: str | None = None
    data: Mapping[str, object] | None = None
    screenshot: str | None = None

    @property
    def content(self) -> Mapping[str, object] | None:
        if self.data is None:
            return None
        content = self.data.get("content")
        if not isinstance(content, dict):
            return None
        return cast("Mapping[str, object]", content)

    @property
    def clm_positions(self) -> Mapping[str, object] | None:
        content = self.content
        if content is None:
            return None
        section = content.get("clmPositions")
        if not isinstance(section, dict):
            return None
        return cast("Mapping[str, object]", section)
