"""Table store call budgets: timeouts, retries, and concurrency."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from .env import optional_float_env, optional_int_env

DEFAULT_STORE_TIMEOUT_SECONDS: Final[float] = 10.0
DEFAULT_STORE_MAX_CONCURRENCY: Final[int] = 4


@dataclass(slots=True, frozen=True)
class StoreRetryPolicy:
    """Bounded exponential backoff for transient store failures.

    ``total`` counts retries, so a call is attempted at most ``total + 1`` times.
    """

    total: int = 3
    backoff_factor: float = 0.5
    max_backoff_wait: float = 10.0
    backoff_jitter: float = 1.0


@dataclass(slots=True, frozen=True)
class StoreConfig:
    timeout_seconds: float = DEFAULT_STORE_TIMEOUT_SECONDS
    max_concurrency: int = DEFAULT_STORE_MAX_CONCURRENCY
    retry: StoreRetryPolicy = field(default_factory=StoreRetryPolicy)


def get_store_config() -> StoreConfig:
    return StoreConfig(
        timeout_seconds=optional_float_env(
            "LPSNAP_STORE_TIMEOUT_SECONDS", DEFAULT_STORE_TIMEOUT_SECONDS
        ),
        max_concurrency=optional_int_env(
            "LPSNAP_STORE_MAX_CONCURRENCY", DEFAULT_STORE_MAX_CONCURRENCY
        ),
    )
