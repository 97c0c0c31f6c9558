"""Graceful stop command, then SIGTERM, then SIGKILL."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .child_process import ChildProcess

logger = logging.getLogger(__name__)


async def wait_for_exit(exited: Awaitable, timeout_seconds: float) -> bool:
    """Race the exit signal against a timer; the exit signal itself is never cancelled."""
    try:
        await asyncio.wait_for(asyncio.shield(exited), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        return False
    return True


async def run_shutdown_ladder(
    process: ChildProcess,
    exited: Awaitable,
    *,
    graceful_timeout_seconds: float,
    terminate_timeout_seconds: float,
    report: Callable[[str], object],
) -> str:
    """Escalate until the process exits; returns the step that ended it (``graceful``/``terminate``/``kill``)."""
    if await wait_for_exit(exited, graceful_timeout_seconds):
        return "graceful"
    report("Graceful shutdown timed out, sending SIGTERM")
    process.terminate()

    if await wait_for_exit(exited, terminate_timeout_seconds):
        return "terminate"

    report("SIGTERM timed out, sending SIGKILL")
    process.kill()
    return "kill"
