"""Lifecycle state machine for the supervised game server.

The supervisor owns the child process handle, the status, the terminal
buffer and the metrics sampler. Status changes happen synchronously between
await points, so every ``server.state`` event is emitted in transition order.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional

from .broadcast import BroadcastSink, SinkRelay
from .config import ManagerConfig
from .exceptions import ConflictError, ManagerError, ValidationError
from .metrics_sampler import MetricsSampler
from .models import ProcessStatus, ServerStateEvent, TerminalSource
from .process_supervisor_helpers import (
    AsyncioProcessLauncher,
    ChildProcess,
    ProcessLauncher,
    assert_lifecycle_ready,
    run_shutdown_ladder,
)
from .runtime_settings import RuntimeSettingsService
from .terminal import TerminalBuffer

logger = logging.getLogger(__name__)


class ProcessSupervisor:
    def __init__(
        self,
        config: ManagerConfig,
        runtime_settings: RuntimeSettingsService,
        metrics: MetricsSampler,
        terminal: TerminalBuffer,
        sink: SinkRelay,
        *,
        launcher: Optional[ProcessLauncher] = None,
    ) -> None:
        self._config = config
        self._runtime_settings = runtime_settings
        self._metrics = metrics
        self.terminal = terminal
        self._sink = sink
        self._launcher = launcher or AsyncioProcessLauncher()

        self.status = ProcessStatus.STOPPED
        self.started_at: Optional[str] = None
        self.last_exit_code: Optional[int] = None
        self._process: Optional[ChildProcess] = None
        self._exit_task: Optional[asyncio.Task] = None
        self._stream_tasks: List[asyncio.Task] = []

    @property
    def sink(self) -> BroadcastSink:
        return self._sink.target

    def set_sink(self, sink: Optional[BroadcastSink]) -> None:
        self._sink.set_target(sink)

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    def state_event(self) -> ServerStateEvent:
        return ServerStateEvent(status=self.status, started_at=self.started_at, last_exit_code=self.last_exit_code)

    def _set_status(self, status: ProcessStatus) -> None:
        self.status = status
        logger.debug("Server status -> %s", status.value)
        self._sink.emit("server.state", self.state_event().to_payload())

    def push_terminal(self, text: str, source: TerminalSource = TerminalSource.SYSTEM) -> None:
        self.terminal.push(text, source)

    def _report(self, text: str) -> None:
        self.terminal.system(text)

    def _is_live(self, pid: int) -> bool:
        return self._process is not None and self._process.pid == pid and self.status is not ProcessStatus.STOPPED

    @asynccontextmanager
    async def installing(self, conflict_message: str) -> AsyncIterator[None]:
        """Hold ``installing`` for the block; always returns to ``stopped``."""
        if self._process is not None or self.status is not ProcessStatus.STOPPED:
            raise ConflictError(conflict_message)
        self._set_status(ProcessStatus.INSTALLING)
        try:
            yield
        finally:
            self._set_status(ProcessStatus.STOPPED)

    def assert_ready(self, action: str) -> str:
        return assert_lifecycle_ready(action, self._config.server_dir, self._config.managed_java_dir)

    async def start(self) -> None:
        """Launch the server; 409 when already running or prerequisites are missing."""
        if self.status in (ProcessStatus.RUNNING, ProcessStatus.STARTING):
            raise ConflictError("Server is already running.")
        if self.status is not ProcessStatus.STOPPED:
            raise ConflictError(f"Cannot start while server is {self.status.value}.")
        java_command = self.assert_ready("start")

        self._set_status(ProcessStatus.STARTING)
        try:
            settings = self._runtime_settings.read()
            self._config.backups_dir.mkdir(parents=True, exist_ok=True)
            command = [java_command, *self._runtime_settings.launch_arguments(str(self._config.backups_dir), settings)]
            self._report(f"Starting server: {' '.join(command)}")

            process = await self._launcher.launch(command, self._config.server_dir)
        except BaseException:
            self._metrics.stop()
            self.started_at = None
            self._set_status(ProcessStatus.STOPPED)
            raise

        self._process = process
        self.started_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        self._stream_tasks = [
            asyncio.ensure_future(self._consume(process.stdout, TerminalSource.STDOUT)),
            asyncio.ensure_future(self._consume(process.stderr, TerminalSource.STDERR)),
        ]
        self._exit_task = asyncio.ensure_future(self._watch_exit(process))
        self._set_status(ProcessStatus.RUNNING)
        self._metrics.start(process.pid, self._is_live)

    async def _consume(self, stream: Optional[asyncio.StreamReader], source: TerminalSource) -> None:
        if stream is None:
            return
        while True:
            raw = await stream.readline()
            if not raw:
                return
            text = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if text.strip():
                self.push_terminal(text, source)

    async def _drain_streams(self) -> None:
        """Give the output pumps a bounded window; inherited pipes may never reach EOF."""
        pending = [task for task in self._stream_tasks if not task.done()]
        if not pending:
            return
        _, stragglers = await asyncio.wait(pending, timeout=self._config.stream_drain_timeout_seconds)
        for task in stragglers:
            task.cancel()
        if stragglers:
            logger.warning("Output streams still open after exit; stopped reading %d stream(s)", len(stragglers))
            await asyncio.gather(*stragglers, return_exceptions=True)

    async def _watch_exit(self, process: ChildProcess) -> int:
        code = await process.wait()
        await self._drain_streams()
        self._metrics.stop()
        self.last_exit_code = code
        self._report(f"Server exited with code {code}")
        if self._process is process:
            self._process = None
            self._stream_tasks = []
        self.started_at = None
        self._set_status(ProcessStatus.STOPPED)
        return code

    async def stop(self, force: bool = False) -> None:
        """Stop the server and wait until it has exited.

        Without ``force`` the configured stop command is sent first. Either way
        the process gets the graceful timeout to exit on its own before
        SIGTERM and then SIGKILL.
        """
        process, exit_task = self._process, self._exit_task
        if process is None or exit_task is None or self.status is ProcessStatus.STOPPED:
            self.assert_ready("stop")
            return

        self._set_status(ProcessStatus.STOPPING)
        if not force:
            try:
                self.send_command(self._config.stop_command)
                self._report(f"Stop signal sent: {self._config.stop_command}")
            except (ManagerError, OSError) as exc:
                logger.warning("Could not deliver stop command: %s", exc)

        await run_shutdown_ladder(
            process,
            exit_task,
            graceful_timeout_seconds=self._config.shutdown_timeout_seconds,
            terminate_timeout_seconds=self._config.terminate_timeout_seconds,
            report=self._report,
        )
        await asyncio.shield(exit_task)

    async def restart(self) -> None:
        self.assert_ready("restart")
        await self.stop()
        await self.start()

    def send_command(self, value: str) -> None:
        if self._process is None or self.status is ProcessStatus.STOPPED:
            raise ConflictError("Server is not running.")
        trimmed = value.strip()
        if not trimmed:
            raise ValidationError("Command cannot be empty.")
        self._process.write_line(trimmed)
        self._report(f"> {trimmed}")

    async def shutdown(self) -> None:
        """Stop a running server during service shutdown without raising on missing prerequisites."""
        if self._process is not None and self.status is not ProcessStatus.STOPPED:
            await self.stop()
        self._metrics.stop()


__all__ = ["ProcessSupervisor"]
