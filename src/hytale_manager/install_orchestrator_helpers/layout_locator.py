"""Locate the server jar and assets archive inside an extracted download."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

SERVER_JAR_NAME = "HytaleServer.jar"
ASSETS_ARCHIVE_NAME = "Assets.zip"
MAX_SCAN_DEPTH = 8
MAX_SCAN_DIRECTORIES = 10_000


@dataclass(frozen=True)
class ServerLayout:
    server_dir: Path
    assets_path: Path


def _scan(root: Path) -> Optional[ServerLayout]:
    direct_server = root / "Server"
    direct_assets = root / ASSETS_ARCHIVE_NAME
    if (direct_server / SERVER_JAR_NAME).is_file() and direct_assets.is_file():
        return ServerLayout(server_dir=direct_server, assets_path=direct_assets)

    jar_path: Optional[Path] = None
    assets_path: Optional[Path] = None
    queue = deque([(root, 0)])
    visited = 0
    while queue and (jar_path is None or assets_path is None) and visited < MAX_SCAN_DIRECTORIES:
        current, depth = queue.popleft()
        visited += 1
        for entry in sorted(current.iterdir()):
            if entry.is_dir():
                if depth < MAX_SCAN_DEPTH:
                    queue.append((entry, depth + 1))
                continue
            if jar_path is None and entry.name == SERVER_JAR_NAME:
                jar_path = entry
            if assets_path is None and entry.name == ASSETS_ARCHIVE_NAME:
                assets_path = entry

    if jar_path is None or assets_path is None:
        logger.debug("Server layout not found under %s after scanning %d directories", root, visited)
        return None
    return ServerLayout(server_dir=jar_path.parent, assets_path=assets_path)


async def locate_downloaded_layout(root: Path) -> Optional[ServerLayout]:
    """Direct ``Server/`` + ``Assets.zip`` first, then a bounded breadth-first scan."""
    return await asyncio.to_thread(_scan, root)
