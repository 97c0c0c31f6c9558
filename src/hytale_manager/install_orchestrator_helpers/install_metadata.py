"""Installed-version marker stored inside the managed server directory."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from ..models import InstalledServerMetadata

logger = logging.getLogger(__name__)

INSTALL_METADATA_FILENAME = ".hytale-manager-install.json"


def _non_empty_string(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


class InstallMetadataFile:
    def __init__(self, server_dir: Path) -> None:
        self.path = server_dir / INSTALL_METADATA_FILENAME

    async def read(self) -> Optional[InstalledServerMetadata]:
        if not await aiofiles.os.path.exists(self.path):
            return None
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as handle:
                parsed = json.loads(await handle.read())
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable install metadata %s: %s", self.path, exc)
            return None

        if not isinstance(parsed, dict) or not all(
            _non_empty_string(parsed.get(key)) for key in ("patchline", "version", "installedAt")
        ):
            return None
        return InstalledServerMetadata(patchline=parsed["patchline"], version=parsed["version"], installed_at=parsed["installedAt"])

    async def write(self, metadata: InstalledServerMetadata) -> None:
        async with aiofiles.open(self.path, "w", encoding="utf-8") as handle:
            await handle.write(json.dumps(metadata.to_dict(), indent=2))
