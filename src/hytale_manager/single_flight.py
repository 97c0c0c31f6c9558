"""In-flight task memoisation so concurrent callers share one execution."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Runs at most one ``factory()`` at a time; late callers await the same task."""

    def __init__(self) -> None:
        self._task: Optional[asyncio.Task] = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, factory: Callable[[], Awaitable[T]], *, on_join: Optional[Callable[[], None]] = None) -> T:
        if self.in_flight:
            if on_join is not None:
                on_join()
            return await asyncio.shield(self._task)

        task = asyncio.ensure_future(factory())
        self._task = task
        task.add_done_callback(self._clear)
        return await asyncio.shield(task)

    def _clear(self, task: asyncio.Task) -> None:
        if self._task is task:
            self._task = None
        if not task.cancelled():
            task.exception()  # mark retrieved


__all__ = ["SingleFlight"]
