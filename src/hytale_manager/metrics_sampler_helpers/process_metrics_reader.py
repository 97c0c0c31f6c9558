"""Per-process CPU and memory readings through psutil."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import psutil

logger = logging.getLogger(__name__)

PSUTIL_ERRORS = (psutil.Error, OSError)


@dataclass(frozen=True)
class ProcessSample:
    cpu_percent: float
    rss_bytes: int
    virtual_memory_bytes: int


class ProcessMetricsReader(Protocol):
    def prime(self, pid: int) -> None: ...

    async def read(self, pid: int) -> Optional[ProcessSample]: ...


class PsutilProcessMetricsReader:
    """Keeps one ``psutil.Process`` per pid so ``cpu_percent`` measures since the previous tick."""

    def __init__(self) -> None:
        self._processes: Dict[int, psutil.Process] = {}

    def prime(self, pid: int) -> None:
        """Seed ``cpu_percent`` so the first tick reports usage instead of 0.0."""
        try:
            process = psutil.Process(pid)
            process.cpu_percent(interval=None)
        except PSUTIL_ERRORS as exc:
            logger.debug("Could not prime CPU counter for pid %s: %s", pid, exc)
            self._processes.pop(pid, None)
            return
        self._processes = {pid: process}

    def _read_sync(self, pid: int) -> Optional[ProcessSample]:
        try:
            process = self._processes.get(pid)
            if process is None:
                self._processes = {pid: psutil.Process(pid)}
                process = self._processes[pid]
            with process.oneshot():
                cpu_percent = process.cpu_percent(interval=None)
                memory = process.memory_info()
        except PSUTIL_ERRORS as exc:
            logger.debug("Process metrics unavailable for pid %s: %s", pid, exc)
            self._processes.pop(pid, None)
            return None
        return ProcessSample(
            cpu_percent=max(0.0, float(cpu_percent)),
            rss_bytes=max(0, int(memory.rss)),
            virtual_memory_bytes=max(0, int(memory.vms)),
        )

    async def read(self, pid: int) -> Optional[ProcessSample]:
        return await asyncio.to_thread(self._read_sync, pid)
