"""Ports for the two upstream extraction sources."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from lpsnap.domain.model import Capture, Observation


class VisionExtractionError(RuntimeError):
    """Raised when the vision model call or its payload cannot be used."""


@runtime_checkable
class TextPatternExtractor(Protocol):
    """Synchronous extractor called once per captured page."""

    def __call__(self, capture: Capture) -> Sequence[Observation]: ...


@runtime_checkable
class VisionExtractor(Protocol):
    """Asynchronous extractor called at most once per capture.

    ``context`` holds the text extractor's observations for the same capture so the
    model can be told which pairs are on the page.
    """

    async def __call__(
        self,
        image: str,
        *,
        capture: Capture,
        context: Sequence[Observation],
    ) -> Sequence[Observation]: ...
