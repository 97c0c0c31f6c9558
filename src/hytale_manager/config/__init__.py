"""Shared configuration helpers and dataclasses."""

from .errors import ConfigurationError
from .manager_config import (
    DownloaderConfig,
    JavaRuntimeConfig,
    ManagerConfig,
    ensure_directories,
    load_manager_config,
)
from .runtime import env_bool, env_int, env_milliseconds, env_path, env_str, reset_default_values

__all__ = [
    "ConfigurationError",
    "DownloaderConfig",
    "JavaRuntimeConfig",
    "ManagerConfig",
    "ensure_directories",
    "env_bool",
    "env_int",
    "env_milliseconds",
    "env_path",
    "env_str",
    "load_manager_config",
    "reset_default_values",
]
