"""Persisted server launch settings backed by the settings store."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .models import RuntimeSettings, RuntimeSettingsUpdate
from .runtime_settings_helpers import (
    apply_settings_update,
    build_start_arguments,
    extract_heap_option_mb,
    parse_args,
)
from .runtime_settings_helpers.validation import (
    MAX_BACKUP_COUNT,
    MAX_BACKUP_FREQUENCY_MINUTES,
    MAX_HEAP_MB,
    MIN_HEAP_MB,
)
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)

BIND_PORT_KEY = "server.bind_port"
AUTO_BACKUP_ENABLED_KEY = "server.auto_backup_enabled"
BACKUP_FREQUENCY_MINUTES_KEY = "server.backup_frequency_minutes"
BACKUP_MAX_COUNT_KEY = "server.backup_max_count"
JAVA_MIN_HEAP_MB_KEY = "server.java_min_heap_mb"
JAVA_MAX_HEAP_MB_KEY = "server.java_max_heap_mb"
JAVA_EXTRA_ARGS_KEY = "server.java_extra_args"

DEFAULT_BIND_PORT = 25565
DEFAULT_BACKUP_FREQUENCY_MINUTES = 30
DEFAULT_BACKUP_MAX_COUNT = 12
DEFAULT_JAVA_MIN_HEAP_MB = 2048
DEFAULT_JAVA_MAX_HEAP_MB = 4096

_TRUE_SETTINGS = {"1", "true", "yes", "on"}
_FALSE_SETTINGS = {"0", "false", "no", "off"}


def default_heap_settings(start_args: str) -> Tuple[int, int]:
    """Derive (min, max) heap defaults from ``-Xms``/``-Xmx`` in the configured start args."""
    args = parse_args(start_args)
    configured_min = extract_heap_option_mb(args, "-Xms")
    configured_max = extract_heap_option_mb(args, "-Xmx")

    max_heap = configured_max if configured_max is not None else DEFAULT_JAVA_MAX_HEAP_MB
    min_heap = configured_min if configured_min is not None else min(DEFAULT_JAVA_MIN_HEAP_MB, max_heap)

    return (
        max(MIN_HEAP_MB, min(min_heap, MAX_HEAP_MB)),
        max(MIN_HEAP_MB, min(max(max_heap, min_heap), MAX_HEAP_MB)),
    )


class RuntimeSettingsService:
    """Reads, validates and persists the launch settings of the managed server."""

    def __init__(self, store: SettingsStore, start_args: str) -> None:
        self._store = store
        self._start_args = start_args

    def _read_int(self, key: str, fallback: int, minimum: int, maximum: int) -> int:
        raw = self._store.get(key)
        if raw is None:
            return fallback
        try:
            parsed = int(raw.strip())
        except ValueError:
            logger.debug("Ignoring non-integer stored value for %s: %r", key, raw)
            return fallback
        if parsed < minimum or parsed > maximum:
            return fallback
        return parsed

    def _read_bool(self, key: str, fallback: bool) -> bool:
        raw = self._store.get(key)
        if raw is None:
            return fallback
        normalized = raw.strip().lower()
        if normalized in _TRUE_SETTINGS:
            return True
        if normalized in _FALSE_SETTINGS:
            return False
        return fallback

    def read(self) -> RuntimeSettings:
        """Current settings; stored values out of range fall back to defaults."""
        default_min, default_max = default_heap_settings(self._start_args)
        min_heap = self._read_int(JAVA_MIN_HEAP_MB_KEY, default_min, MIN_HEAP_MB, MAX_HEAP_MB)
        max_heap = self._read_int(JAVA_MAX_HEAP_MB_KEY, default_max, MIN_HEAP_MB, MAX_HEAP_MB)
        if min_heap > max_heap:
            min_heap, max_heap = max_heap, min_heap

        return RuntimeSettings(
            bind_port=self._read_int(BIND_PORT_KEY, DEFAULT_BIND_PORT, 1, 65535),
            auto_backup_enabled=self._read_bool(AUTO_BACKUP_ENABLED_KEY, True),
            backup_frequency_minutes=self._read_int(
                BACKUP_FREQUENCY_MINUTES_KEY, DEFAULT_BACKUP_FREQUENCY_MINUTES, 1, MAX_BACKUP_FREQUENCY_MINUTES
            ),
            backup_max_count=self._read_int(BACKUP_MAX_COUNT_KEY, DEFAULT_BACKUP_MAX_COUNT, 1, MAX_BACKUP_COUNT),
            java_min_heap_mb=min_heap,
            java_max_heap_mb=max_heap,
            java_extra_args=(self._store.get(JAVA_EXTRA_ARGS_KEY) or "").strip(),
        )

    def update(self, update: RuntimeSettingsUpdate) -> RuntimeSettings:
        """Validate ``update`` against the current settings and persist every field."""
        settings = apply_settings_update(self.read(), update)
        self._store.set(BIND_PORT_KEY, str(settings.bind_port))
        self._store.set(AUTO_BACKUP_ENABLED_KEY, "1" if settings.auto_backup_enabled else "0")
        self._store.set(BACKUP_FREQUENCY_MINUTES_KEY, str(settings.backup_frequency_minutes))
        self._store.set(BACKUP_MAX_COUNT_KEY, str(settings.backup_max_count))
        self._store.set(JAVA_MIN_HEAP_MB_KEY, str(settings.java_min_heap_mb))
        self._store.set(JAVA_MAX_HEAP_MB_KEY, str(settings.java_max_heap_mb))
        self._store.set(JAVA_EXTRA_ARGS_KEY, settings.java_extra_args)
        return settings

    def launch_arguments(self, backup_dir: str, settings: Optional[RuntimeSettings] = None) -> List[str]:
        return build_start_arguments(self._start_args, settings or self.read(), backup_dir)


def describe_settings(settings: RuntimeSettings) -> str:
    return (
        f"Runtime settings updated: bind=0.0.0.0:{settings.bind_port}, "
        f"autoBackup={'on' if settings.auto_backup_enabled else 'off'}, "
        f"backupFrequency={settings.backup_frequency_minutes}m, backupMaxCount={settings.backup_max_count}, "
        f"javaHeap={settings.java_min_heap_mb}m-{settings.java_max_heap_mb}m."
    )


__all__ = ["RuntimeSettingsService", "default_heap_settings", "describe_settings"]
