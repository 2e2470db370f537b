"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_bool_env, require_env_var, require_env_vars
from .errors import ConfigurationError, InvalidConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging, resolve_log_level
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .store import StoreConfig, StoreRetryPolicy, get_store_config
from .vision import VisionConfig, get_vision_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "StoreConfig",
    "StoreRetryPolicy",
    "VisionConfig",
    "configure_logging",
    "get_database_config",
    "get_storage_config",
    "get_store_config",
    "get_vision_config",
    "optional_bool_env",
    "require_env_var",
    "require_env_vars",
    "resolve_log_level",
]
