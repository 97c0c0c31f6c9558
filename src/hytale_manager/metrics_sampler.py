"""Periodic CPU, memory and network sampling of the supervised process.

Sampling is bound to one pid. Ticks that find that pid is no longer the
supervised process do nothing, and a tick that starts while the previous one
is still collecting is skipped rather than queued.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Callable, Deque, List, Optional

from .broadcast import BroadcastSink
from .metrics_sampler_helpers import NetworkCounterReader, NetworkRateTracker, ProcessMetricsReader
from .models import MetricPoint
from .terminal import utc_timestamp

logger = logging.getLogger(__name__)


class MetricsSampler:
    def __init__(
        self,
        process_reader: ProcessMetricsReader,
        network_reader: NetworkCounterReader,
        sink: BroadcastSink,
        *,
        interval_seconds: float,
        history_limit: int,
        rate_tracker: Optional[NetworkRateTracker] = None,
        timestamp: Callable[[], str] = utc_timestamp,
    ) -> None:
        self._process_reader = process_reader
        self._network_reader = network_reader
        self._sink = sink
        self.interval_seconds = interval_seconds
        self.history_limit = history_limit
        self._rates = rate_tracker or NetworkRateTracker()
        self._timestamp = timestamp
        self._history: Deque[MetricPoint] = deque(maxlen=history_limit)
        self._pid: Optional[int] = None
        self._is_live: Callable[[int], bool] = lambda pid: False
        self._collecting = False
        self._loop_task: Optional[asyncio.Task] = None
        self._tick_tasks: set = set()

    @property
    def history(self) -> List[MetricPoint]:
        return list(self._history)

    @property
    def tracked_pid(self) -> Optional[int]:
        return self._pid

    def start(self, pid: int, is_live: Callable[[int], bool]) -> None:
        """Begin sampling ``pid``; ``is_live(pid)`` must report whether it is still the supervised process."""
        self.stop()
        self._history.clear()
        self._rates.reset()
        self._pid = pid
        self._is_live = is_live
        self._process_reader.prime(pid)
        self._loop_task = asyncio.get_running_loop().create_task(self._run(pid))

    def stop(self) -> None:
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
        self._pid = None
        self._collecting = False
        self._rates.reset()

    async def _run(self, pid: int) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            task = asyncio.ensure_future(self.tick(pid))
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)

    async def tick(self, pid: int) -> Optional[MetricPoint]:
        """Take one sample; returns ``None`` when skipped or when the process read failed."""
        if self._collecting or self._pid != pid or not self._is_live(pid):
            return None

        self._collecting = True
        try:
            sample = await self._process_reader.read(pid)
            if sample is None:
                return None

            counters = await self._network_reader.read()
            rates = self._rates.update(counters)
            point = MetricPoint(
                timestamp=self._timestamp(),
                cpu_percent=sample.cpu_percent,
                rss_bytes=sample.rss_bytes,
                virtual_memory_bytes=sample.virtual_memory_bytes,
                network_rx_bytes_per_sec=rates[0] if rates else None,
                network_tx_bytes_per_sec=rates[1] if rates else None,
            )
            if self._pid != pid:
                return None
            self._history.append(point)
            self._sink.emit("server.metrics", {"point": point.to_payload()})
            return point
        finally:
            self._collecting = False


__all__ = ["MetricsSampler"]
