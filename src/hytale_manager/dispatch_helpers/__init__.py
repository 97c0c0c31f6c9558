"""Helpers for the command dispatcher."""

from .params import (
    BackupCreateParams,
    BackupIdParams,
    CommandParams,
    LogReadParams,
    ModFileParams,
    StopParams,
    UploadChunkParams,
    UploadIdParams,
    UploadStartParams,
    WhitelistEnabledParams,
    WhitelistUuidParams,
    WhitelistValueParams,
    settings_update_from_payload,
)

__all__ = [
    "BackupCreateParams",
    "BackupIdParams",
    "CommandParams",
    "LogReadParams",
    "ModFileParams",
    "StopParams",
    "UploadChunkParams",
    "UploadIdParams",
    "UploadStartParams",
    "WhitelistEnabledParams",
    "WhitelistUuidParams",
    "WhitelistValueParams",
    "settings_update_from_payload",
]
