"""Application configuration helpers."""

from __future__ import annotations

from .env import env_flag, env_positive_int, optional_env_var, require_env_vars
from .errors import (
    ConfigurationError,
    InvalidConfigurationError,
    MissingConfigurationError,
)
from .logging import configure_logging
from .reconciliation import (
    ReconciliationConfig,
    get_reconciliation_config,
    parse_source_priorities,
)
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "ReconciliationConfig",
    "StorageConfig",
    "configure_logging",
    "env_flag",
    "env_positive_int",
    "get_database_config",
    "get_reconciliation_config",
    "get_storage_config",
    "optional_env_var",
    "parse_source_priorities",
    "require_env_vars",
]
