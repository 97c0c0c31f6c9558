"""Field-by-field validation of runtime settings updates."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from ..exceptions import ValidationError
from ..models import RuntimeSettings, RuntimeSettingsUpdate
from .arg_parser import is_heap_argument, parse_args

MIN_HEAP_MB = 256
MAX_HEAP_MB = 1024 * 1024
MAX_BACKUP_FREQUENCY_MINUTES = 24 * 60
MAX_BACKUP_COUNT = 500
MAX_EXTRA_ARGS_LENGTH = 2000


def _is_integer_in_range(value: Any, minimum: int, maximum: int) -> bool:
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return minimum <= value <= maximum


def _require_range(value: Any, name: str, minimum: int, maximum: int) -> int:
    if not _is_integer_in_range(value, minimum, maximum):
        raise ValidationError(f"{name} must be an integer between {minimum} and {maximum}.")
    return value


def _validate_extra_args(raw: str) -> str:
    candidate = str(raw).strip()
    if len(candidate) > MAX_EXTRA_ARGS_LENGTH:
        raise ValidationError(f"javaExtraArgs is too long (maximum {MAX_EXTRA_ARGS_LENGTH} characters).")

    tokens = parse_args(candidate)
    if any(token.lower() == "-jar" for token in tokens):
        raise ValidationError("javaExtraArgs cannot include '-jar'.")
    if any(is_heap_argument(token) for token in tokens):
        raise ValidationError("javaExtraArgs cannot include -Xms/-Xmx. Use javaMinHeapMb and javaMaxHeapMb instead.")
    return candidate


def apply_settings_update(current: RuntimeSettings, update: RuntimeSettingsUpdate) -> RuntimeSettings:
    """Return ``current`` with every present field of ``update`` validated and applied.

    Raises:
        ValidationError: a field is out of range or the heap bounds are inverted.
    """
    changes = {}

    if update.bind_port is not None:
        changes["bind_port"] = _require_range(update.bind_port, "bindPort", 1, 65535)
    if update.auto_backup_enabled is not None:
        changes["auto_backup_enabled"] = bool(update.auto_backup_enabled)
    if update.backup_frequency_minutes is not None:
        changes["backup_frequency_minutes"] = _require_range(
            update.backup_frequency_minutes, "backupFrequencyMinutes", 1, MAX_BACKUP_FREQUENCY_MINUTES
        )
    if update.backup_max_count is not None:
        changes["backup_max_count"] = _require_range(update.backup_max_count, "backupMaxCount", 1, MAX_BACKUP_COUNT)
    if update.java_min_heap_mb is not None:
        changes["java_min_heap_mb"] = _require_range(update.java_min_heap_mb, "javaMinHeapMb", MIN_HEAP_MB, MAX_HEAP_MB)
    if update.java_max_heap_mb is not None:
        changes["java_max_heap_mb"] = _require_range(update.java_max_heap_mb, "javaMaxHeapMb", MIN_HEAP_MB, MAX_HEAP_MB)

    candidate = replace(current, **changes)
    if candidate.java_min_heap_mb > candidate.java_max_heap_mb:
        raise ValidationError("javaMinHeapMb cannot be greater than javaMaxHeapMb.")

    if update.java_extra_args is not None:
        candidate = replace(candidate, java_extra_args=_validate_extra_args(update.java_extra_args))
    return candidate
