"""Read access to the server's ``logs/`` directory."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List

import aiofiles
import aiofiles.os

from .exceptions import NotFoundError
from .models import LogFileInfo
from .path_utils import sanitize_filename

TERMINAL_LOG_NAME = "__terminal__"
DEFAULT_TAIL_LINES = 300


class LogFiles:
    def __init__(self, server_dir: Path, terminal_lines: Callable[[], List[str]]) -> None:
        self.logs_dir = server_dir / "logs"
        self._terminal_lines = terminal_lines

    async def list_files(self) -> List[LogFileInfo]:
        await aiofiles.os.makedirs(self.logs_dir, exist_ok=True)

        def scan() -> List[LogFileInfo]:
            files = []
            for entry in self.logs_dir.iterdir():
                if not entry.is_file():
                    continue
                stats = entry.stat()
                modified = datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc).isoformat().replace("+00:00", "Z")
                files.append(LogFileInfo(name=entry.name, size=stats.st_size, modified_at=modified))
            return files

        files = await asyncio.to_thread(scan)
        files.sort(key=lambda info: info.modified_at, reverse=True)
        return files

    async def read(self, name: str, tail_lines: int = DEFAULT_TAIL_LINES) -> str:
        """Last ``tail_lines`` lines of a log file; ``__terminal__`` returns the terminal buffer."""
        if name == TERMINAL_LOG_NAME:
            return "\n".join(self._terminal_lines())

        path = self.logs_dir / sanitize_filename(name)
        if not await aiofiles.os.path.isfile(path):
            raise NotFoundError("Log file not found.")
        async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as handle:
            text = await handle.read()
        lines = text.splitlines()
        return "\n".join(lines[-tail_lines:] if tail_lines > 0 else [])


__all__ = ["DEFAULT_TAIL_LINES", "LogFiles", "TERMINAL_LOG_NAME"]
