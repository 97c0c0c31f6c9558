"""Utilities for running the manager as a long-lived async service with consistent shutdown handling."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Coroutine, Iterator, Optional

from .logging_config import setup_logging

try:
    import fcntl
except ImportError:  # pragma: no cover - fcntl unavailable on non-POSIX platforms
    fcntl = None


class SingleInstanceError(RuntimeError):
    """Raised when another instance of the same service is already running."""


class ServiceInstanceLock:
    """File-lock based guard to enforce a single manager per data directory."""

    def __init__(self, service_name: str, runtime_dir: Path) -> None:
        self.service_name = service_name
        self.runtime_dir = runtime_dir
        self.runtime_dir.mkdir(parents=True, exist_ok=True)
        self.lock_path = self.runtime_dir / f"{service_name}.lock"
        self._fd: Optional[int] = None
        self._released = False

    def acquire(self) -> None:
        """Attempt to acquire the lock; raises if already held."""
        if fcntl is None:  # pragma: no cover - non-POSIX platforms
            raise SingleInstanceError("Single instance enforcement requires fcntl on this platform.")

        fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o664)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            existing_pid = None
            try:
                with os.fdopen(fd, "r") as fh:
                    existing_pid = fh.read().strip() or None
            except (OSError, ValueError):
                existing_pid = None

            suffix = f" (PID {existing_pid})." if existing_pid else "."
            raise SingleInstanceError(f"Service '{self.service_name}' appears to be running already" + suffix) from exc

        os.ftruncate(fd, 0)
        os.write(fd, str(os.getpid()).encode("utf-8"))
        os.fsync(fd)
        self._fd = fd

    def release(self) -> None:
        """Release the lock and remove the lock file."""
        if self._released:
            return

        if self._fd is not None:
            try:
                if fcntl is not None:
                    fcntl.flock(self._fd, fcntl.LOCK_UN)
            finally:
                os.close(self._fd)
                self._fd = None

        self.lock_path.unlink(missing_ok=True)
        self._released = True


@contextmanager
def single_instance_guard(service_name: str, runtime_dir: Path) -> Iterator[ServiceInstanceLock]:
    """Context manager enforcing one running instance per service name and runtime dir."""
    lock = ServiceInstanceLock(service_name, runtime_dir)
    lock.acquire()
    try:
        yield lock
    finally:
        lock.release()


ServiceFactory = Callable[[], Coroutine[Any, Any, None]]


def run_async_service(
    factory: ServiceFactory,
    *,
    service_name: str,
    runtime_dir: Path,
    log_dir: Optional[Path] = None,
    configure_logging: bool = True,
    shutdown_message: Optional[str] = None,
    ignore_sighup: bool = False,
) -> None:
    """Run an async service with consistent Ctrl+C handling.

    Args:
        factory: Callable returning the coroutine to execute.
        service_name: Identifier used for the lock file and log file.
        runtime_dir: Directory holding the single-instance lock.
        log_dir: Directory for the service log file.
        configure_logging: Whether to configure logging via ``setup_logging``.
        shutdown_message: Optional custom message when interrupted.
        ignore_sighup: Keep running after the launching terminal closes.
    """
    try:
        with single_instance_guard(service_name, runtime_dir):
            if configure_logging:
                setup_logging(service_name, log_dir=log_dir)

            logger = logging.getLogger(__name__)

            if ignore_sighup:
                try:
                    signal.signal(signal.SIGHUP, signal.SIG_IGN)
                    logger.debug("Ignoring SIGHUP for %s", service_name)
                except AttributeError:
                    logger.debug("SIGHUP not available; cannot ignore for %s", service_name)
                except ValueError:
                    logger.warning("Failed to ignore SIGHUP for %s", service_name)

            try:
                asyncio.run(factory())
            except KeyboardInterrupt:
                if shutdown_message:
                    logger.info(shutdown_message)
                else:
                    logger.info("%s service interrupted by user", service_name)
    except SingleInstanceError as exc:
        sys.stderr.write(str(exc) + "\n")
        raise SystemExit(1) from exc


__all__ = ["ServiceInstanceLock", "SingleInstanceError", "run_async_service", "single_instance_guard"]
