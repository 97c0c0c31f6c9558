"""Breadth-first search for an extracted Java home."""

from __future__ import annotations

import asyncio
from collections import deque
from pathlib import Path
from typing import Optional

from ..process_supervisor_helpers.prerequisites import java_executable_name


def _find(root: Path, java_name: str) -> Optional[Path]:
    queue = deque([root])
    while queue:
        current = queue.popleft()
        if (current / "bin" / java_name).is_file():
            return current
        mac_home = current / "Contents" / "Home"
        if (mac_home / "bin" / java_name).is_file():
            return mac_home
        queue.extend(entry for entry in sorted(current.iterdir()) if entry.is_dir() and not entry.is_symlink())
    return None


async def find_java_home(root: Path, java_name: Optional[str] = None) -> Optional[Path]:
    """First directory (nearest ``root``) holding ``bin/java``, including macOS ``Contents/Home`` bundles."""
    return await asyncio.to_thread(_find, root, java_name or java_executable_name())
