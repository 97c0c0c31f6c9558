"""Mod files in the server's ``mods/`` directory and chunked mod uploads."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List

import aiofiles
import aiofiles.os

from .exceptions import ConflictError, NotFoundError, ValidationError
from .models import ModFile, UploadSession
from .path_utils import sanitize_filename

logger = logging.getLogger(__name__)

DISABLED_SUFFIX = ".disabled"
_ALLOWED_MOD_SUFFIXES = (".jar", ".zip")


def _iso_mtime(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class ModManager:
    def __init__(self, server_dir: Path, uploads_dir: Path, report: Callable[[str], object]) -> None:
        self.mods_dir = server_dir / "mods"
        self.uploads_dir = uploads_dir
        self._report = report
        self._uploads: Dict[str, UploadSession] = {}

    def _describe(self, path: Path) -> ModFile:
        stats = path.stat()
        return ModFile(
            name=path.name,
            size=stats.st_size,
            modified_at=_iso_mtime(stats.st_mtime),
            disabled=path.name.endswith(DISABLED_SUFFIX),
        )

    async def list_mods(self) -> List[ModFile]:
        """Mod files, newest first."""
        await aiofiles.os.makedirs(self.mods_dir, exist_ok=True)

        def scan() -> List[ModFile]:
            return [self._describe(entry) for entry in self.mods_dir.iterdir() if entry.is_file()]

        mods = await asyncio.to_thread(scan)
        mods.sort(key=lambda mod: mod.modified_at, reverse=True)
        return mods

    async def _rename(self, source_name: str, target_name: str) -> None:
        source = self.mods_dir / source_name
        target = self.mods_dir / target_name
        if not await aiofiles.os.path.isfile(source):
            raise NotFoundError(f"Mod not found: {source_name}")
        if await aiofiles.os.path.exists(target):
            raise ConflictError(f"Target mod file already exists: {target_name}")
        await aiofiles.os.rename(source, target)

    async def disable_mod(self, filename: str) -> None:
        safe_name = sanitize_filename(filename)
        if safe_name.endswith(DISABLED_SUFFIX):
            return
        await self._rename(safe_name, f"{safe_name}{DISABLED_SUFFIX}")

    async def enable_mod(self, filename: str) -> None:
        safe_name = sanitize_filename(filename)
        if not safe_name.endswith(DISABLED_SUFFIX):
            return
        await self._rename(safe_name, safe_name[: -len(DISABLED_SUFFIX)])

    async def delete_mod(self, filename: str) -> None:
        target = self.mods_dir / sanitize_filename(filename)
        if not await aiofiles.os.path.isfile(target):
            raise NotFoundError("Mod file not found.")
        await aiofiles.os.remove(target)

    async def start_upload(self, filename: str, size: int) -> str:
        safe_name = sanitize_filename(filename)
        if not safe_name.lower().endswith(_ALLOWED_MOD_SUFFIXES):
            raise ValidationError("Only .jar and .zip mods are supported.")
        if size <= 0:
            raise ValidationError("Upload size must be greater than zero.")

        await aiofiles.os.makedirs(self.uploads_dir, exist_ok=True)
        upload_id = str(uuid.uuid4())
        part_path = self.uploads_dir / f"{upload_id}.part"
        async with aiofiles.open(part_path, "wb"):
            pass
        self._uploads[upload_id] = UploadSession(upload_id=upload_id, filename=safe_name, size=size, part_path=part_path)
        return upload_id

    def _session(self, upload_id: str) -> UploadSession:
        session = self._uploads.get(upload_id)
        if session is None:
            raise NotFoundError("Upload session not found.")
        return session

    async def append_upload(self, upload_id: str, chunk_base64: str) -> UploadSession:
        session = self._session(upload_id)
        try:
            chunk = base64.b64decode(chunk_base64 or "", validate=False)
        except (binascii.Error, ValueError) as exc:
            raise ValidationError("Upload chunk is not valid base64.") from exc
        if not chunk:
            raise ValidationError("Upload chunk is empty.")
        if session.received + len(chunk) > session.size:
            raise ValidationError(
                f"Upload exceeds declared size: {session.received + len(chunk)} of {session.size} bytes."
            )

        async with aiofiles.open(session.part_path, "ab") as handle:
            await handle.write(chunk)
        session.received += len(chunk)
        return session

    async def finish_upload(self, upload_id: str) -> ModFile:
        """Move the uploaded file into ``mods/``, replacing a same-named mod.

        An incomplete upload is rejected and stays open for further chunks.
        """
        session = self._session(upload_id)
        if session.received != session.size:
            raise ValidationError(f"Upload incomplete: received {session.received} of {session.size} bytes.")
        try:
            await aiofiles.os.makedirs(self.mods_dir, exist_ok=True)
            destination = self.mods_dir / session.filename
            await aiofiles.os.replace(session.part_path, destination)
            self._report(f"Uploaded mod {destination.name}.")
            return await asyncio.to_thread(self._describe, destination)
        finally:
            self._uploads.pop(upload_id, None)
            if await aiofiles.os.path.exists(session.part_path):
                await aiofiles.os.remove(session.part_path)

    async def cancel_upload(self, upload_id: str) -> None:
        session = self._uploads.pop(upload_id, None)
        if session is None:
            return
        if await aiofiles.os.path.exists(session.part_path):
            await aiofiles.os.remove(session.part_path)


__all__ = ["DISABLED_SUFFIX", "ModManager"]
