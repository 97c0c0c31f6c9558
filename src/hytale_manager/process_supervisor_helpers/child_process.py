"""Owned handle around the supervised child process."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class ChildProcess(Protocol):
    pid: int
    stdout: Optional[asyncio.StreamReader]
    stderr: Optional[asyncio.StreamReader]

    def write_line(self, text: str) -> None: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...

    async def wait(self) -> int: ...


class ProcessLauncher(Protocol):
    async def launch(self, command: Sequence[str], cwd: Path) -> ChildProcess: ...


class AsyncioChildProcess:
    """Adapts ``asyncio.subprocess.Process`` to the supervisor's handle interface."""

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process
        self.pid = process.pid
        self.stdout = process.stdout
        self.stderr = process.stderr

    def write_line(self, text: str) -> None:
        stdin = self._process.stdin
        if stdin is None or stdin.is_closing():
            raise BrokenPipeError("Server input stream is closed.")
        stdin.write(f"{text}\n".encode("utf-8"))

    def terminate(self) -> None:
        try:
            self._process.terminate()
        except ProcessLookupError:
            logger.debug("Process %s already exited before SIGTERM", self.pid)

    def kill(self) -> None:
        try:
            self._process.kill()
        except ProcessLookupError:
            logger.debug("Process %s already exited before SIGKILL", self.pid)

    async def wait(self) -> int:
        return await self._process.wait()


class AsyncioProcessLauncher:
    async def launch(self, command: Sequence[str], cwd: Path) -> ChildProcess:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(os.environ),
        )
        return AsyncioChildProcess(process)
