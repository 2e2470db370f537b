"""Logging setup for the lpsnap command line."""

from __future__ import annotations

import logging
import os
from typing import Final

from .errors import InvalidConfigurationError

LOG_LEVEL_ENV: Final[str] = "LPSNAP_LOG_LEVEL"

# Chatty at INFO: one line per HTTP request or per SQL statement.
NOISY_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore", "sqlalchemy.engine")


def resolve_log_level(default: int = logging.INFO) -> int:
    """Level named by ``LPSNAP_LOG_LEVEL`` (e.g. ``debug``), or ``default``."""

    raw = os.getenv(LOG_LEVEL_ENV)
    if raw is None or not raw.strip():
        return default
    level = logging.getLevelNamesMapping().get(raw.strip().upper())
    if level is None:
        raise InvalidConfigurationError(LOG_LEVEL_ENV, raw, "a logging level name")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> int:
    """Initialise the root logger with a terse CLI format and return the level used.

    Third-party request and statement logs stay at WARNING unless lpsnap itself logs
    at DEBUG. Pass ``force=True`` to reconfigure during tests.
    """

    resolved = level if level is not None else resolve_log_level()
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    noisy_level = resolved if resolved <= logging.DEBUG else max(resolved, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)
    return resolved
