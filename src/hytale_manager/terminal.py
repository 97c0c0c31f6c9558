"""Bounded terminal buffer shared by the supervisor and the installers."""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, List

from .broadcast import BroadcastSink
from .models import TerminalLine, TerminalSource

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TerminalBuffer:
    """Ring buffer of stamped lines; each append is broadcast as ``server.output``."""

    def __init__(self, capacity: int, sink: BroadcastSink, *, clock: Callable[[], str] = utc_timestamp) -> None:
        self._lines: Deque[TerminalLine] = deque(maxlen=max(1, capacity))
        self._sink = sink
        self._clock = clock

    def push(self, text: str, source: TerminalSource = TerminalSource.SYSTEM) -> TerminalLine:
        line = TerminalLine(timestamp=self._clock(), source=source, text=text)
        self._lines.append(line)
        if source is TerminalSource.SYSTEM:
            logger.info("%s", text)
        self._sink.emit("server.output", {"line": line.render(), "source": source.value})
        return line

    def system(self, text: str) -> TerminalLine:
        return self.push(text, TerminalSource.SYSTEM)

    def lines(self) -> List[TerminalLine]:
        return list(self._lines)

    def rendered(self) -> List[str]:
        return [line.render() for line in self._lines]

    def texts(self) -> List[str]:
        return [line.text for line in self._lines]

    def __len__(self) -> int:
        return len(self._lines)


__all__ = ["TerminalBuffer", "utc_timestamp"]
