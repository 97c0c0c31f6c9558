"""Helper modules for the process supervisor."""

from .child_process import AsyncioProcessLauncher, ChildProcess, ProcessLauncher
from .prerequisites import (
    assert_lifecycle_ready,
    is_server_installed,
    managed_java_command_if_installed,
    managed_java_path,
    missing_prerequisites,
)
from .shutdown_ladder import run_shutdown_ladder, wait_for_exit

__all__ = [
    "AsyncioProcessLauncher",
    "ChildProcess",
    "ProcessLauncher",
    "assert_lifecycle_ready",
    "is_server_installed",
    "managed_java_command_if_installed",
    "managed_java_path",
    "missing_prerequisites",
    "run_shutdown_ladder",
    "wait_for_exit",
]
