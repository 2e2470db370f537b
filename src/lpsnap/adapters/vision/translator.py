"""Prompt construction and translation of model answers into observations."""

from __future__ import annotations

import json
import re
from logging import getLogger
from typing import TYPE_CHECKING, Final

from pydantic import ValidationError

from lpsnap.domain.model import Observation, ObservationSource, PositionFields
from lpsnap.domain.ports import VisionExtractionError

from .schema import VisionReading, VisionRefusal

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

log = getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_DATA_URL = re.compile(r"^data:(?P<media_type>image/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)
DEFAULT_MEDIA_TYPE: Final[str] = "image/png"

PROMPT_TEMPLATE: Final[str] = """\
You are analyzing a screenshot of a DeFi concentrated liquidity position on {protocol}.

The page lists these token pairs:
{pairs}

Find the one position whose token balance breakdown is expanded on screen. Read:
- the token amounts (the quantity of each token)
- the percentages (the share of the position each token represents)

Return ONLY a JSON object in this exact format, with no markdown and no explanation:
{{
  "pair": "<TOKEN0/TOKEN1 as written on the page>",
  "token0": "<TOKEN0>",
  "token1": "<TOKEN1>",
  "token0Amount": <number>,
  "token1Amount": <number>,
  "token0Percentage": <number>,
  "token1Percentage": <number>
}}

If no breakdown is visible, return {{"error": "<reason>"}} instead.\
"""


def build_prompt(protocol: str, context: Sequence[Observation]) -> str:
    labels = dict.fromkeys(observation.raw_pair_label for observation in context)
    pairs = "\n".join(f"- {label}" for label in labels) or "- (unknown)"
    return PROMPT_TEMPLATE.format(protocol=protocol, pairs=pairs)


def split_image(image: str) -> tuple[str, str]:
    """Return ``(media_type, base64_data)`` for a data URL or bare base64 string."""

    match = _DATA_URL.match(image.strip())
    if match is None:
        return DEFAULT_MEDIA_TYPE, image.strip()
    return match.group("media_type"), match.group("data")


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub("", text).strip()


def parse_answer(text: str) -> VisionReading | None:
    """Parse the model's answer; ``None`` when the model reported no breakdown."""

    cleaned = strip_code_fences(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise VisionExtractionError(f"Vision answer is not JSON: {cleaned[:200]!r}") from exc
    if not isinstance(payload, dict):
        raise VisionExtractionError("Vision answer is not a JSON object")

    try:
        if "error" in payload:
            refusal = VisionRefusal.model_validate(payload)
            log.info("Vision model found no breakdown: %s", refusal.error)
            return None
        reading = VisionReading.model_validate(payload)
    except ValidationError as exc:
        raise VisionExtractionError(f"Unexpected vision answer: {exc}") from exc

    if reading.token0_amount is None or reading.token1_amount is None:
        raise VisionExtractionError(f"Vision answer for {reading.pair} has no token amounts")
    return reading


def reading_to_observation(
    reading: VisionReading,
    *,
    protocol: str,
    captured_at: datetime,
    capture_id: str | None = None,
) -> Observation:
    return Observation(
        protocol=protocol,
        raw_pair_label=reading.pair,
        captured_at=captured_at,
        fields=PositionFields(
            token0_amount=reading.token0_amount,
            token1_amount=reading.token1_amount,
            token0_percentage=reading.token0_percentage,
            token1_percentage=reading.token1_percentage,
        ),
        source=ObservationSource.VISION,
        token0=reading.token0,
        token1=reading.token1,
        capture_id=capture_id,
    )
