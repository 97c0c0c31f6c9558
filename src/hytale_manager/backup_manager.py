"""Manual world backups plus the server's own ``--backup`` archives.

Manual backups are directory copies of the world and server config files
under ``<backups>/manual/<stamp>/`` with a ``metadata.json`` beside them.
Native backups are the ZIP files the server writes into ``<backups>/`` (and
``<backups>/archive/``) when automatic backups are enabled. Creating
and restoring require a stopped server.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import aiofiles
import aiofiles.os

from .archive_extractor import ArchiveExtractor
from .config import ManagerConfig
from .exceptions import ConflictError, ManagerError, NotFoundError, ValidationError
from .models import BackupEntry, ProcessStatus
from .path_utils import sanitize_filename, timestamp_id, workspace_path

logger = logging.getLogger(__name__)

MANUAL_PREFIX = "manual:"
NATIVE_PREFIX = "native:"
METADATA_FILE = "metadata.json"
ARCHIVE_DIR = "archive"

BACKUP_ITEMS = (
    "universe",
    "mods",
    "config.json",
    "permissions.json",
    "whitelist.json",
    "bans.json",
    "ops.json",
    "server.properties",
)

_SAFE_SEGMENT = re.compile(r"^[a-zA-Z0-9._-]+$")


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _tree_size(path: Path) -> int:
    if path.is_file():
        return path.stat().st_size
    return sum(entry.stat().st_size for entry in path.rglob("*") if entry.is_file())


def _copy_item(source: Path, destination: Path) -> None:
    if source.is_dir():
        shutil.copytree(source, destination, dirs_exist_ok=True)
    else:
        shutil.copy2(source, destination)


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def _looks_like_universe(path: Path) -> bool:
    if not path.is_dir():
        return False
    return (path / "worlds").is_dir() or (path / "memories.json").is_file()


def find_universe_dir(root: Path) -> Optional[Path]:
    """Locate the ``universe`` directory inside an extracted native backup."""
    if (root / "universe").is_dir():
        return root / "universe"
    if _looks_like_universe(root):
        return root
    for child in sorted(root.iterdir()):
        if not child.is_dir():
            continue
        if (child / "universe").is_dir():
            return child / "universe"
        if _looks_like_universe(child):
            return child
    return None


class BackupManager:
    def __init__(
        self,
        config: ManagerConfig,
        server_status: Callable[[], ProcessStatus],
        extractor: ArchiveExtractor,
        report: Callable[[str], object],
    ) -> None:
        self._config = config
        self._server_status = server_status
        self._extractor = extractor
        self._report = report
        self._lock = asyncio.Lock()
        self.native_dir = config.backups_dir
        self.manual_dir = config.backups_dir / "manual"

    def _require_stopped(self, message: str) -> None:
        if self._server_status() is not ProcessStatus.STOPPED:
            raise ConflictError(message)

    async def create_backup(self, note: str = "") -> BackupEntry:
        """Copy the world and server config files into a new manual backup."""
        self._require_stopped("Server must be stopped before creating a backup.")
        async with self._lock:
            await aiofiles.os.makedirs(self.manual_dir, exist_ok=True)
            backup_id = timestamp_id()
            destination = self.manual_dir / backup_id
            suffix = 1
            while await aiofiles.os.path.exists(destination):
                backup_id = f"{timestamp_id()}-{suffix}"
                destination = self.manual_dir / backup_id
                suffix += 1

            copied = await asyncio.to_thread(self._copy_server_items, destination)
            created_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
            metadata = {"id": backup_id, "createdAt": created_at, "note": note, "items": copied}
            async with aiofiles.open(destination / METADATA_FILE, "w", encoding="utf-8") as handle:
                await handle.write(json.dumps(metadata, indent=2))

            size = await asyncio.to_thread(_tree_size, destination)
            self._report(f"Backup created: {backup_id} ({len(copied)} items)")
            return BackupEntry(
                id=f"{MANUAL_PREFIX}{backup_id}",
                name=backup_id,
                created_at=created_at,
                note=note,
                size=size,
                archived=False,
                source="manual",
                format="directory",
                item_count=len(copied),
            )

    def _copy_server_items(self, destination: Path) -> List[str]:
        destination.mkdir(parents=True, exist_ok=True)
        copied = []
        for item in BACKUP_ITEMS:
            source = self._config.server_dir / item
            if not source.exists():
                continue
            _copy_item(source, destination / item)
            copied.append(item)
        return copied

    async def list_backups(self) -> List[BackupEntry]:
        """Manual and native backups, newest first."""
        await aiofiles.os.makedirs(self.manual_dir, exist_ok=True)
        backups = await asyncio.to_thread(self._scan)
        backups.sort(key=lambda entry: entry.created_at, reverse=True)
        return backups

    def _scan(self) -> List[BackupEntry]:
        backups = [self._describe_manual(entry) for entry in self.manual_dir.iterdir() if entry.is_dir()]
        backups.extend(self._native_entries(self.native_dir, archived=False))
        archive_dir = self.native_dir / ARCHIVE_DIR
        if archive_dir.is_dir():
            backups.extend(self._native_entries(archive_dir, archived=True))
        return backups

    def _describe_manual(self, path: Path) -> BackupEntry:
        created_at = _iso(path.stat().st_mtime)
        note = "Manual dashboard backup"
        item_count = 0
        metadata_path = path / METADATA_FILE
        if metadata_path.is_file():
            try:
                metadata = json.loads(metadata_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Ignoring unreadable backup metadata %s: %s", metadata_path, exc)
                metadata = {}
            if isinstance(metadata, dict):
                created_at = str(metadata.get("createdAt") or created_at)
                note = str(metadata.get("note") or note)
                items = metadata.get("items")
                item_count = len(items) if isinstance(items, list) else 0
        return BackupEntry(
            id=f"{MANUAL_PREFIX}{path.name}",
            name=path.name,
            created_at=created_at,
            note=note,
            size=_tree_size(path),
            archived=False,
            source="manual",
            format="directory",
            item_count=item_count,
        )

    def _native_entries(self, directory: Path, *, archived: bool) -> List[BackupEntry]:
        entries = []
        for path in directory.iterdir():
            if not path.is_file() or not path.name.lower().endswith(".zip"):
                continue
            stats = path.stat()
            relative = f"{ARCHIVE_DIR}/{path.name}" if archived else path.name
            entries.append(
                BackupEntry(
                    id=f"{NATIVE_PREFIX}{relative}",
                    name=path.name,
                    created_at=_iso(stats.st_mtime),
                    note="Archived native Hytale backup" if archived else "Native Hytale backup",
                    size=stats.st_size,
                    archived=archived,
                    source="native",
                    format="zip",
                    item_count=1,
                )
            )
        return entries

    def _native_path(self, relative: str) -> Path:
        normalized = relative.replace("\\", "/").lstrip("/")
        segments = [segment.strip() for segment in normalized.split("/") if segment.strip()]
        if ".." in normalized or not segments or len(segments) > 2:
            raise ValidationError("Invalid backup id.")
        if len(segments) == 2 and segments[0] != ARCHIVE_DIR:
            raise ValidationError("Invalid backup id.")
        if not all(_SAFE_SEGMENT.match(segment) for segment in segments):
            raise ValidationError("Invalid backup id.")
        if not segments[-1].lower().endswith(".zip"):
            raise ValidationError("Only ZIP backups are supported for native backups.")
        return self.native_dir.joinpath(*segments)

    async def _resolve(self, backup_id: str) -> Tuple[str, Path]:
        value = (backup_id or "").strip()
        if not value:
            raise ValidationError("Backup id is required.")

        if value.startswith(MANUAL_PREFIX):
            kind, path = "manual", self.manual_dir / sanitize_filename(value[len(MANUAL_PREFIX):])
        elif value.startswith(NATIVE_PREFIX):
            kind, path = "native", self._native_path(value[len(NATIVE_PREFIX):].strip())
        else:
            raise ValidationError("Invalid backup id.")

        if not await aiofiles.os.path.exists(path):
            raise NotFoundError("Backup not found.")
        return kind, path

    async def delete_backup(self, backup_id: str) -> None:
        _, path = await self._resolve(backup_id)
        async with self._lock:
            await asyncio.to_thread(_remove_path, path)
        self._report(f"Backup deleted: {path.name}")

    async def restore_backup(self, backup_id: str) -> None:
        """Replace server files from a backup; a native ZIP only replaces ``universe/``."""
        self._require_stopped("Server must be stopped before restoring backup.")
        kind, path = await self._resolve(backup_id)
        async with self._lock:
            if kind == "manual":
                await asyncio.to_thread(self._restore_manual, path)
                self._report(f"Manual backup restored: {path.name}")
                return
            await self._restore_native(path)

    def _restore_manual(self, source: Path) -> None:
        for entry in source.iterdir():
            if entry.name == METADATA_FILE:
                continue
            destination = self._config.server_dir / entry.name
            _remove_path(destination)
            _copy_item(entry, destination)

    async def _restore_native(self, archive: Path) -> None:
        workspace = workspace_path(self._config.data_dir, "restore")
        await aiofiles.os.makedirs(workspace, exist_ok=True)
        try:
            self._report(f"Restoring native backup: {archive.name}")
            await self._extractor.extract(archive, workspace, timeout_seconds=self._config.downloader.extract_timeout_seconds)

            universe = await asyncio.to_thread(find_universe_dir, workspace)
            if universe is None:
                raise ManagerError(
                    "Unable to locate a universe directory in the backup archive. "
                    "Restore expects a backup ZIP with universe data.",
                    status=500,
                )

            destination = self._config.server_dir / "universe"
            await asyncio.to_thread(_remove_path, destination)
            await asyncio.to_thread(shutil.copytree, universe, destination)
            self._report(f"Native backup restored into {destination}")
        finally:
            await asyncio.to_thread(shutil.rmtree, workspace, True)


__all__ = ["BACKUP_ITEMS", "BackupManager", "find_universe_dir"]
