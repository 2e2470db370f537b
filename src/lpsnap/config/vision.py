"""Vision model configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from .env import require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

ANTHROPIC_BASE_URL: Final[str] = "https://api.anthropic.com/v1/"
ANTHROPIC_API_VERSION: Final[str] = "2023-06-01"
DEFAULT_VISION_MODEL: Final[str] = "claude-3-haiku-20240307"
VISION_TIMEOUT_SECONDS: Final[float] = 60.0


@dataclass(frozen=True, slots=True)
class VisionConfig:
    """Holds vision model API configuration values."""

    api_key: str
    model: str
    resilience: ResilienceConfig
    max_tokens: int = 1024


def default_vision_resilience() -> ResilienceConfig:
    return ResilienceConfig(
        name="vision",
        base_url=ANTHROPIC_BASE_URL,
        timeout_seconds=VISION_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=2),
        ratelimit=RateLimit(max_calls=1, per_seconds=1.0),
        default_headers={"anthropic-version": ANTHROPIC_API_VERSION},
    )


def get_vision_config(*, resilience: ResilienceConfig | None = None) -> VisionConfig:
    values = require_env_vars(("ANTHROPIC_API_KEY",))
    model = os.getenv("LPSNAP_VISION_MODEL") or DEFAULT_VISION_MODEL
    return VisionConfig(
        api_key=values["ANTHROPIC_API_KEY"],
        model=model.strip(),
        resilience=resilience or default_vision_resilience(),
    )
