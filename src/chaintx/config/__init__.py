"""Application configuration helpers."""

from __future__ import annotations

from chaintx.common.logging import configure_logging

from .env import optional_enum_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .workflow import DUPLICATE_KEYS_ENV, UNRESOLVED_PARENTS_ENV, get_workflow_settings

__all__ = [
    "DUPLICATE_KEYS_ENV",
    "UNRESOLVED_PARENTS_ENV",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_storage_config",
    "get_workflow_settings",
    "optional_enum_env",
    "require_env_vars",
]
