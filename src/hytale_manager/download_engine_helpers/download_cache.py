"""Content-addressed cache of downloaded artifacts keyed by logical cache key."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import shutil
import uuid
from pathlib import Path

import aiofiles.os

logger = logging.getLogger(__name__)


class DownloadCache:
    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = cache_dir

    def path_for(self, cache_key: str) -> Path:
        digest = hashlib.sha256(cache_key.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{digest}.bin"

    async def exists(self, cache_key: str) -> bool:
        return await aiofiles.os.path.isfile(self.path_for(cache_key))

    async def discard(self, cache_key: str) -> None:
        path = self.path_for(cache_key)
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)

    async def restore(self, cache_key: str, destination: Path) -> int:
        """Copy the cached blob to ``destination`` and return its size."""
        if await aiofiles.os.path.exists(destination):
            await aiofiles.os.remove(destination)
        await asyncio.to_thread(shutil.copyfile, self.path_for(cache_key), destination)
        return (await aiofiles.os.stat(destination)).st_size

    async def save(self, source: Path, cache_key: str) -> None:
        """Copy ``source`` into the cache through a temp file and rename."""
        cache_path = self.path_for(cache_key)
        await aiofiles.os.makedirs(self.cache_dir, exist_ok=True)
        temp_path = cache_path.with_name(f"{cache_path.name}.{uuid.uuid4()}.tmp")
        await asyncio.to_thread(shutil.copyfile, source, temp_path)
        try:
            await aiofiles.os.replace(temp_path, cache_path)
        except OSError as exc:
            logger.debug("Cache rename failed (%s); copying directly", exc)
            await aiofiles.os.remove(temp_path)
            await asyncio.to_thread(shutil.copyfile, source, cache_path)
