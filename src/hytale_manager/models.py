"""Shared data types for the process supervisor, installers and sampler."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class ProcessStatus(Enum):
    """Lifecycle states of the supervised game server."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    INSTALLING = "installing"


class TerminalSource(Enum):
    STDOUT = "stdout"
    STDERR = "stderr"
    SYSTEM = "system"


@dataclass(frozen=True)
class TerminalLine:
    """One stamped line held in the terminal ring buffer."""

    timestamp: str
    source: TerminalSource
    text: str

    def render(self) -> str:
        return f"{self.timestamp} [{self.source.value}] {self.text}"


@dataclass(frozen=True)
class MetricPoint:
    timestamp: str
    cpu_percent: float
    rss_bytes: int
    virtual_memory_bytes: int
    network_rx_bytes_per_sec: Optional[float] = None
    network_tx_bytes_per_sec: Optional[float] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "cpuPercent": self.cpu_percent,
            "rssBytes": self.rss_bytes,
            "virtualMemoryBytes": self.virtual_memory_bytes,
            "networkRxBytesPerSec": self.network_rx_bytes_per_sec,
            "networkTxBytesPerSec": self.network_tx_bytes_per_sec,
        }


@dataclass
class Credentials:
    """Downloader OAuth token pair; ``expires_at`` is epoch seconds."""

    access_token: str
    refresh_token: str
    expires_at: float
    environment: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VersionManifest:
    version: str
    download_url: str
    sha256: str


@dataclass(frozen=True)
class InstalledServerMetadata:
    patchline: str
    version: str
    installed_at: str

    def to_dict(self) -> Dict[str, str]:
        return {"patchline": self.patchline, "version": self.version, "installedAt": self.installed_at}


@dataclass(frozen=True)
class InstallResult:
    installed: bool
    version: str
    updated: bool
    applied: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class InstallAvailability:
    patchline: str
    installed_version: Optional[str]
    latest_version: Optional[str]
    update_available: bool


@dataclass(frozen=True)
class JavaInstallResult:
    java_command: str
    java_home: str
    release_name: str

    def to_dict(self) -> Dict[str, str]:
        return {"javaCommand": self.java_command, "javaHome": self.java_home, "releaseName": self.release_name}


@dataclass(frozen=True)
class RuntimeSettings:
    """Persisted launch settings, already range-checked."""

    bind_port: int
    auto_backup_enabled: bool
    backup_frequency_minutes: int
    backup_max_count: int
    java_min_heap_mb: int
    java_max_heap_mb: int
    java_extra_args: str


@dataclass(frozen=True)
class RuntimeSettingsUpdate:
    """Partial settings change; ``None`` fields keep their current value."""

    bind_port: Optional[int] = None
    auto_backup_enabled: Optional[bool] = None
    backup_frequency_minutes: Optional[int] = None
    backup_max_count: Optional[int] = None
    java_min_heap_mb: Optional[int] = None
    java_max_heap_mb: Optional[int] = None
    java_extra_args: Optional[str] = None


@dataclass(frozen=True)
class ServerStateEvent:
    status: ProcessStatus
    started_at: Optional[str]
    last_exit_code: Optional[int]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "startedAt": self.started_at,
            "lastExitCode": self.last_exit_code,
            "metricsSampling": self.status in (ProcessStatus.RUNNING, ProcessStatus.STARTING),
        }


@dataclass(frozen=True)
class ModFile:
    name: str
    size: int
    modified_at: str
    disabled: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "size": self.size, "modifiedAt": self.modified_at, "disabled": self.disabled}


@dataclass(frozen=True)
class LogFileInfo:
    name: str
    size: int
    modified_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "size": self.size, "modifiedAt": self.modified_at}


@dataclass
class UploadSession:
    upload_id: str
    filename: str
    size: int
    part_path: Path
    received: int = 0


@dataclass(frozen=True)
class BackupEntry:
    """One restorable backup; ``id`` is ``manual:<name>`` or ``native:<relative path>``."""

    id: str
    name: str
    created_at: str
    note: str
    size: int
    archived: bool
    source: str
    format: str
    item_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "note": self.note,
            "size": self.size,
            "archived": self.archived,
            "source": self.source,
            "format": self.format,
            "itemCount": self.item_count,
        }


@dataclass(frozen=True)
class WhitelistEntry:
    uuid: str
    username: Optional[str]
    last_seen_at: Optional[str]
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {"uuid": self.uuid, "username": self.username, "lastSeenAt": self.last_seen_at, "source": self.source}


@dataclass(frozen=True)
class WhitelistState:
    enabled: bool
    entries: List[WhitelistEntry]

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "entries": [entry.to_dict() for entry in self.entries]}


__all__: List[str] = [
    "BackupEntry",
    "Credentials",
    "InstallAvailability",
    "InstallResult",
    "InstalledServerMetadata",
    "JavaInstallResult",
    "LogFileInfo",
    "MetricPoint",
    "ModFile",
    "ProcessStatus",
    "RuntimeSettings",
    "RuntimeSettingsUpdate",
    "ServerStateEvent",
    "TerminalLine",
    "TerminalSource",
    "UploadSession",
    "VersionManifest",
    "WhitelistEntry",
    "WhitelistState",
]
