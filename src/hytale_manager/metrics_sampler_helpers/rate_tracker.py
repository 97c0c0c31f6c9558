"""Bytes-per-second rates from consecutive counter readings."""

from __future__ import annotations

import time
from typing import Callable, Optional, Tuple

from .network_counter_reader import NetworkCounters


class NetworkRateTracker:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._previous: Optional[Tuple[float, NetworkCounters]] = None

    def reset(self) -> None:
        self._previous = None

    def update(self, counters: Optional[NetworkCounters]) -> Optional[Tuple[float, float]]:
        """Return ``(rx, tx)`` bytes/sec, or ``None`` on the first reading or a non-positive interval."""
        if counters is None:
            self._previous = None
            return None

        now = self._clock()
        previous = self._previous
        self._previous = (now, counters)
        if previous is None:
            return None

        elapsed = now - previous[0]
        if elapsed <= 0:
            return None
        return (
            max(0.0, (counters.rx_bytes - previous[1].rx_bytes) / elapsed),
            max(0.0, (counters.tx_bytes - previous[1].tx_bytes) / elapsed),
        )
