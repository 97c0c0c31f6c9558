"""Zip and tar.gz extraction through external tools with a hard timeout."""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
import zipfile
from pathlib import Path
from typing import Callable, List, Optional

from .exceptions import HostEnvironmentError, ManagerError, RequestTimeoutError, ValidationError
from .models import TerminalSource

logger = logging.getLogger(__name__)

TerminalWriter = Callable[[str, TerminalSource], object]


def archive_kind(archive: Path) -> str:
    name = archive.name.lower()
    if name.endswith(".zip"):
        return "zip"
    if name.endswith(".tar.gz") or name.endswith(".tgz"):
        return "tar.gz"
    raise ValidationError(f"Unsupported archive format: {archive.name}")


def restore_zip_modes(archive: Path, destination: Path) -> int:
    """Re-apply the Unix permission bits stored in ZIP entries; ``python -m zipfile`` drops them.

    Returns the number of files whose mode was changed.
    """
    root = destination.resolve()
    changed = 0
    with zipfile.ZipFile(archive) as bundle:
        for info in bundle.infolist():
            mode = (info.external_attr >> 16) & 0o777
            if not mode or info.is_dir():
                continue
            target = (destination / info.filename).resolve()
            if root not in target.parents or not target.is_file():
                continue
            target.chmod(mode)
            changed += 1
    return changed


class ArchiveExtractor:
    """Runs ``unzip``/``tar`` and falls back to the interpreter's own archive modules."""

    def __init__(self, write: TerminalWriter, *, which: Callable[[str], Optional[str]] = shutil.which) -> None:
        self._write = write
        self._which = which

    def _zip_command(self, archive: Path, destination: Path) -> List[str]:
        unzip_bin = self._which("unzip")
        if unzip_bin:
            return [unzip_bin, "-oq", str(archive), "-d", str(destination)]
        if not sys.executable:
            raise HostEnvironmentError("ZIP extraction requires unzip or a Python interpreter on the host system.")
        self._write(f"System unzip not found; falling back to {sys.executable} -m zipfile for ZIP extraction.", TerminalSource.SYSTEM)
        return [sys.executable, "-m", "zipfile", "-e", str(archive), str(destination)]

    def _tar_command(self, archive: Path, destination: Path) -> List[str]:
        tar_bin = self._which("tar")
        if tar_bin:
            return [tar_bin, "-xzf", str(archive), "-C", str(destination)]
        if not sys.executable:
            raise HostEnvironmentError("tar.gz extraction requires tar or a Python interpreter on the host system.")
        self._write(f"System tar not found; falling back to {sys.executable} -m tarfile for extraction.", TerminalSource.SYSTEM)
        return [sys.executable, "-m", "tarfile", "-e", str(archive), str(destination)]

    def command_for(self, archive: Path, destination: Path) -> List[str]:
        if archive_kind(archive) == "zip":
            return self._zip_command(archive, destination)
        return self._tar_command(archive, destination)

    async def extract(self, archive: Path, destination: Path, *, timeout_seconds: float) -> None:
        """Extract ``archive`` into ``destination``.

        Raises:
            ValidationError: unsupported archive suffix.
            RequestTimeoutError: the tool exceeded ``timeout_seconds`` (it is killed).
            ManagerError: the tool exited non-zero.
        """
        destination.mkdir(parents=True, exist_ok=True)
        command = self.command_for(archive, destination)
        self._write(f"Extracting archive with {command[0]}...", TerminalSource.SYSTEM)

        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(destination),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        readers = [
            asyncio.ensure_future(self._pump(process.stdout, TerminalSource.STDOUT)),
            asyncio.ensure_future(self._pump(process.stderr, TerminalSource.STDERR)),
        ]

        try:
            code = await asyncio.wait_for(process.wait(), timeout=timeout_seconds)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise RequestTimeoutError(f"Archive extraction timed out after {round(timeout_seconds)} seconds.") from exc
        finally:
            await asyncio.gather(*readers, return_exceptions=True)

        if code != 0:
            raise ManagerError(f"Archive extraction failed with exit code {code}.", status=500, exit_code=code)
        if command[1:3] == ["-m", "zipfile"]:
            restored = await asyncio.to_thread(restore_zip_modes, archive, destination)
            logger.debug("Restored permissions on %d extracted files", restored)
        self._write("Archive extraction complete.", TerminalSource.SYSTEM)

    async def _pump(self, stream: Optional[asyncio.StreamReader], source: TerminalSource) -> None:
        if stream is None:
            return
        while True:
            raw = await stream.readline()
            if not raw:
                return
            text = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if text.strip():
                self._write(text, source)


__all__ = ["ArchiveExtractor", "archive_kind", "restore_zip_modes"]
