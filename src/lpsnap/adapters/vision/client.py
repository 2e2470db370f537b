"""Vision extractor backed by the Anthropic Messages API."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from lpsnap.adapters.http_resilience import ResilienceConfig, ResilientClient
from lpsnap.config.vision import ANTHROPIC_BASE_URL, VisionConfig, get_vision_config
from lpsnap.domain.ports import VisionExtractionError, utcnow

from .schema import ApiErrorResponse, MessagesResponse
from .translator import build_prompt, parse_answer, reading_to_observation, split_image

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from lpsnap.domain.model import Capture, Observation
    from lpsnap.domain.ports import Clock, VisionExtractor

log = getLogger(__name__)

MESSAGES_PATH = "messages"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class AnthropicVisionExtractor:
    """Read the expanded position's token breakdown off a screenshot.

    Returns at most one observation. The caller decides whether its pair label
    resolves against the capture's known pairs.
    """

    config: VisionConfig = field(default_factory=get_vision_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    clock: Clock = field(default=utcnow)

    async def __call__(
        self,
        image: str,
        *,
        capture: Capture,
        context: Sequence[Observation],
    ) -> list[Observation]:
        if not capture.protocol:
            raise VisionExtractionError(f"Capture {capture.id} has no protocol")

        media_type, data = split_image(image)
        body = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {"type": "base64", "media_type": media_type, "data": data},
                        },
                        {"type": "text", "text": build_prompt(capture.protocol, context)},
                    ],
                }
            ],
        }

        async with self.client_factory(self.config.resilience) as client:
            response = await self._post(client, body)

        text = response.first_text()
        if text is None:
            raise VisionExtractionError("No text content in vision response")

        reading = parse_answer(text)
        if reading is None:
            return []
        log.info("Vision model read breakdown for %s on capture %s", reading.pair, capture.id)
        return [
            reading_to_observation(
                reading,
                protocol=capture.protocol,
                captured_at=self.clock(),
                capture_id=capture.id,
            )
        ]

    async def _post(self, client: ResilientClient, body: dict[str, object]) -> MessagesResponse:
        url = MESSAGES_PATH
        if self.config.resilience.base_url is None:
            url = ANTHROPIC_BASE_URL + MESSAGES_PATH
        try:
            response = await client.post(
                url,
                json=body,
                headers={"x-api-key": self.config.api_key},
            )
        except httpx.HTTPError as exc:
            raise VisionExtractionError(f"Vision request failed: {exc}") from exc

        if response.is_error:
            raise VisionExtractionError(_describe_error(response))

        try:
            return MessagesResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise VisionExtractionError(f"Unexpected vision response: {exc}") from exc


def _describe_error(response: httpx.Response) -> str:
    try:
        payload = ApiErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        return f"Vision API error {response.status_code}: {response.text[:200]}"
    log.error("Vision API error %s: %s", payload.error.type, payload.error.message)
    return f"Vision API error {response.status_code} ({payload.error.type}): {payload.error.message}"


if TYPE_CHECKING:
    _extractor_check: VisionExtractor = AnthropicVisionExtractor()
