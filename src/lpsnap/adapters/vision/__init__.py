"""Public interface for the vision extraction adapter."""

from __future__ import annotations

from .client import AnthropicVisionExtractor
from .schema import MessagesResponse, VisionReading
from .translator import build_prompt, parse_answer, reading_to_observation, split_image

__all__ = [
    "AnthropicVisionExtractor",
    "MessagesResponse",
    "VisionReading",
    "build_prompt",
    "parse_answer",
    "reading_to_observation",
    "split_image",
]
