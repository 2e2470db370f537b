"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Final

from .errors import InvalidConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


def _read(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return the given environment variables or raise if any are missing/blank."""

    values = {name: _read(name) for name in names}
    missing = sorted(name for name, value in values.items() if value is None)
    if missing:
        raise MissingConfigurationError(f"Missing configuration for: {', '.join(missing)}")
    return {name: value for name, value in values.items() if value is not None}


def require_env_var(name: str) -> str:
    return require_env_vars([name])[name]


def _positive[N: (int, float)](
    name: str, default: N, parse: Callable[[str], N], expected: str
) -> N:
    raw = _read(name)
    if raw is None:
        return default
    try:
        parsed = parse(raw)
    except ValueError:
        raise InvalidConfigurationError(name, raw, expected) from None
    if parsed <= 0:
        raise InvalidConfigurationError(name, raw, expected)
    return parsed


def optional_float_env(name: str, default: float) -> float:
    """Positive number from ``name``, or ``default`` when unset."""

    return _positive(name, default, float, "a positive number")


def optional_int_env(name: str, default: int) -> int:
    """Positive integer from ``name``, or ``default`` when unset."""

    return _positive(name, default, int, "a positive integer")


def optional_bool_env(name: str, *, default: bool = False) -> bool:
    raw = _read(name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise InvalidConfigurationError(name, raw, "a boolean flag")
