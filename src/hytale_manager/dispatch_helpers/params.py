"""Typed parameter records parsed from loosely-typed command payloads.

Each record validates its own fields in ``from_payload`` so the manager only
ever sees well-formed values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..exceptions import ValidationError
from ..log_files import DEFAULT_TAIL_LINES
from ..models import RuntimeSettingsUpdate

Payload = Mapping[str, Any]


def _require_str(payload: Payload, key: str, message: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(message)
    return value


def _optional_int(payload: Payload, key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer.")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer.")
    return value


def _optional_bool(payload: Payload, key: str) -> Optional[bool]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be a boolean.")
    return value


@dataclass(frozen=True)
class StopParams:
    force: bool = False

    @classmethod
    def from_payload(cls, payload: Payload) -> "StopParams":
        return cls(force=bool(_optional_bool(payload, "force")))


@dataclass(frozen=True)
class CommandParams:
    value: str

    @classmethod
    def from_payload(cls, payload: Payload) -> "CommandParams":
        value = payload.get("value", "")
        if not isinstance(value, str):
            raise ValidationError("value must be a string.")
        return cls(value=value)


@dataclass(frozen=True)
class ModFileParams:
    filename: str

    @classmethod
    def from_payload(cls, payload: Payload) -> "ModFileParams":
        return cls(filename=_require_str(payload, "filename", "filename is required."))


@dataclass(frozen=True)
class UploadStartParams:
    filename: str
    size: int

    @classmethod
    def from_payload(cls, payload: Payload) -> "UploadStartParams":
        filename = payload.get("filename")
        size = _optional_int(payload, "size")
        if not isinstance(filename, str) or not filename or not size:
            raise ValidationError("filename and size are required.")
        return cls(filename=filename, size=size)


@dataclass(frozen=True)
class UploadChunkParams:
    upload_id: str
    chunk: str

    @classmethod
    def from_payload(cls, payload: Payload) -> "UploadChunkParams":
        upload_id = payload.get("uploadId")
        chunk = payload.get("chunk")
        if not isinstance(upload_id, str) or not upload_id or not isinstance(chunk, str) or not chunk:
            raise ValidationError("uploadId and chunk are required.")
        return cls(upload_id=upload_id, chunk=chunk)


@dataclass(frozen=True)
class UploadIdParams:
    upload_id: str

    @classmethod
    def from_payload(cls, payload: Payload) -> "UploadIdParams":
        return cls(upload_id=_require_str(payload, "uploadId", "uploadId is required."))


@dataclass(frozen=True)
class LogReadParams:
    name: str
    tail: int = DEFAULT_TAIL_LINES

    @classmethod
    def from_payload(cls, payload: Payload) -> "LogReadParams":
        name = _require_str(payload, "name", "name is required.")
        tail = _optional_int(payload, "tail")
        return cls(name=name, tail=DEFAULT_TAIL_LINES if tail is None else tail)


@dataclass(frozen=True)
class BackupCreateParams:
    note: str = ""

    @classmethod
    def from_payload(cls, payload: Payload) -> "BackupCreateParams":
        note = payload.get("note", "")
        if note is None:
            note = ""
        if not isinstance(note, str):
            raise ValidationError("note must be a string.")
        return cls(note=note.strip())


@dataclass(frozen=True)
class BackupIdParams:
    backup_id: str

    @classmethod
    def from_payload(cls, payload: Payload) -> "BackupIdParams":
        return cls(backup_id=_require_str(payload, "id", "id is required."))


@dataclass(frozen=True)
class WhitelistEnabledParams:
    enabled: bool

    @classmethod
    def from_payload(cls, payload: Payload) -> "WhitelistEnabledParams":
        enabled = _optional_bool(payload, "enabled")
        if enabled is None:
            raise ValidationError("enabled must be a boolean.")
        return cls(enabled=enabled)


@dataclass(frozen=True)
class WhitelistValueParams:
    value: str

    @classmethod
    def from_payload(cls, payload: Payload) -> "WhitelistValueParams":
        return cls(value=_require_str(payload, "value", "username or UUID is required."))


@dataclass(frozen=True)
class WhitelistUuidParams:
    uuid: str

    @classmethod
    def from_payload(cls, payload: Payload) -> "WhitelistUuidParams":
        return cls(uuid=_require_str(payload, "uuid", "uuid is required."))


def settings_update_from_payload(payload: Payload) -> RuntimeSettingsUpdate:
    """Build a ``RuntimeSettingsUpdate`` from camelCase payload keys; absent keys stay ``None``."""
    extra_args = payload.get("javaExtraArgs")
    if extra_args is not None and not isinstance(extra_args, str):
        raise ValidationError("javaExtraArgs must be a string.")
    return RuntimeSettingsUpdate(
        bind_port=_optional_int(payload, "bindPort"),
        auto_backup_enabled=_optional_bool(payload, "autoBackupEnabled"),
        backup_frequency_minutes=_optional_int(payload, "backupFrequencyMinutes"),
        backup_max_count=_optional_int(payload, "backupMaxCount"),
        java_min_heap_mb=_optional_int(payload, "javaMinHeapMb"),
        java_max_heap_mb=_optional_int(payload, "javaMaxHeapMb"),
        java_extra_args=extra_args,
    )
