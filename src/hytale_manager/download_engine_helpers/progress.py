"""Throttled download progress reporting."""

from __future__ import annotations

import time
from typing import Callable, Optional

_UNITS = ("KB", "MB", "GB")


def format_bytes(size: float) -> str:
    if size < 1024:
        return f"{int(size)} B"
    value = size / 1024
    unit_index = 0
    while value >= 1024 and unit_index < len(_UNITS) - 1:
        value /= 1024
        unit_index += 1
    return f"{value:.1f} {_UNITS[unit_index]}"


class ProgressReporter:
    """Accumulates byte counts and reports at most once per ``interval_seconds``."""

    def __init__(
        self,
        report: Callable[[str], object],
        *,
        total_bytes: Optional[int],
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._report = report
        self.total_bytes = total_bytes if total_bytes and total_bytes > 0 else None
        self._interval = interval_seconds
        self._clock = clock
        self._last_report = clock()
        self.downloaded_bytes = 0

    def advance(self, byte_count: int) -> None:
        self.downloaded_bytes += byte_count
        self.maybe_report()

    def maybe_report(self, *, force: bool = False) -> None:
        now = self._clock()
        if not force and now - self._last_report < self._interval:
            return
        self._report(self.describe())
        self._last_report = now

    def describe(self) -> str:
        if self.total_bytes:
            percent = self.downloaded_bytes / self.total_bytes * 100
            return (
                f"Download progress: {format_bytes(self.downloaded_bytes)} / "
                f"{format_bytes(self.total_bytes)} ({percent:.1f}%)"
            )
        return f"Download progress: {format_bytes(self.downloaded_bytes)}"
