"""Host-wide network byte counters.

Linux reads ``/proc/net/dev``; macOS parses ``netstat -ibn``. Other hosts get
a reader that always reports counters as unavailable.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple

import aiofiles

logger = logging.getLogger(__name__)

PROC_NET_DEV = Path("/proc/net/dev")
_NETSTAT_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class NetworkCounters:
    rx_bytes: int
    tx_bytes: int


class NetworkCounterReader(Protocol):
    async def read(self) -> Optional[NetworkCounters]: ...


def parse_proc_net_dev(raw: str) -> NetworkCounters:
    """Sum receive (column 0) and transmit (column 8) bytes of every non-loopback interface."""
    rx_total = 0
    tx_total = 0
    for line in raw.splitlines()[2:]:
        iface, sep, counters_raw = line.strip().partition(":")
        if not sep or not iface.strip() or iface.strip().startswith("lo"):
            continue
        counters = counters_raw.split()
        try:
            rx_total += int(counters[0])
            tx_total += int(counters[8])
        except (IndexError, ValueError):
            continue
    return NetworkCounters(rx_bytes=rx_total, tx_bytes=tx_total)


def parse_netstat_ibn(raw: str) -> Optional[NetworkCounters]:
    """Sum ``Ibytes``/``Obytes`` per interface, keeping the largest row for interfaces listed per address."""
    lines = [line for line in raw.splitlines() if line.strip()]
    header = next((line for line in lines if "Ibytes" in line and "Obytes" in line), None)
    if header is None:
        return None
    columns = header.split()
    rx_index, tx_index = columns.index("Ibytes"), columns.index("Obytes")

    per_interface: Dict[str, Tuple[int, int]] = {}
    for line in lines:
        if line is header:
            continue
        parts = line.split()
        if len(parts) <= max(rx_index, tx_index):
            continue
        iface = parts[0]
        if not iface or iface == "Name" or iface.startswith("lo"):
            continue
        try:
            rx, tx = int(parts[rx_index]), int(parts[tx_index])
        except ValueError:
            continue
        previous = per_interface.get(iface)
        if previous is None or rx + tx > sum(previous):
            per_interface[iface] = (rx, tx)

    return NetworkCounters(
        rx_bytes=sum(rx for rx, _ in per_interface.values()),
        tx_bytes=sum(tx for _, tx in per_interface.values()),
    )


class LinuxNetworkCounterReader:
    def __init__(self, path: Path = PROC_NET_DEV) -> None:
        self._path = path

    async def read(self) -> Optional[NetworkCounters]:
        try:
            async with aiofiles.open(self._path, "r", encoding="utf-8") as handle:
                raw = await handle.read()
        except OSError as exc:
            logger.debug("Cannot read %s: %s", self._path, exc)
            return None
        return parse_proc_net_dev(raw)


class NetstatNetworkCounterReader:
    def __init__(self, netstat_bin: str) -> None:
        self._netstat_bin = netstat_bin

    async def read(self) -> Optional[NetworkCounters]:
        try:
            process = await asyncio.create_subprocess_exec(
                self._netstat_bin, "-ibn", stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.DEVNULL
            )
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=_NETSTAT_TIMEOUT_SECONDS)
        except (OSError, asyncio.TimeoutError) as exc:
            logger.debug("netstat failed: %s", exc)
            return None
        if process.returncode != 0 or not stdout.strip():
            return None
        return parse_netstat_ibn(stdout.decode("utf-8", errors="replace"))


class UnavailableNetworkCounterReader:
    async def read(self) -> Optional[NetworkCounters]:
        return None


def select_network_counter_reader(system: Optional[str] = None) -> NetworkCounterReader:
    system = system if system is not None else sys.platform
    if system.startswith("linux"):
        return LinuxNetworkCounterReader()
    if system == "darwin":
        netstat_bin = shutil.which("netstat")
        if netstat_bin:
            return NetstatNetworkCounterReader(netstat_bin)
    return UnavailableNetworkCounterReader()
