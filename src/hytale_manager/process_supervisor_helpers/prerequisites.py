"""Readiness checks shared by the supervisor and the installers."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import List, Optional

from ..exceptions import ConflictError

SERVER_FILES_LABEL = "server files"
JAVA_RUNTIME_LABEL = "Adoptium JDK 25"


def is_server_installed(server_dir: Path) -> bool:
    return (server_dir / "HytaleServer.jar").is_file() and (server_dir / "Assets.zip").is_file()


def java_executable_name() -> str:
    return "java.exe" if sys.platform == "win32" else "java"


def managed_java_path(managed_java_dir: Path) -> Path:
    return managed_java_dir / "bin" / java_executable_name()


def managed_java_command_if_installed(managed_java_dir: Path) -> Optional[str]:
    candidate = managed_java_path(managed_java_dir)
    if candidate.is_file() and (sys.platform == "win32" or os.access(candidate, os.X_OK)):
        return str(candidate)
    return None


def missing_prerequisites(server_dir: Path, managed_java_dir: Path) -> List[str]:
    missing = []
    if not is_server_installed(server_dir):
        missing.append(SERVER_FILES_LABEL)
    if managed_java_command_if_installed(managed_java_dir) is None:
        missing.append(JAVA_RUNTIME_LABEL)
    return missing


def assert_lifecycle_ready(action: str, server_dir: Path, managed_java_dir: Path) -> str:
    """Return the managed java command, or raise 409 naming each missing prerequisite."""
    missing = missing_prerequisites(server_dir, managed_java_dir)
    if missing:
        raise ConflictError(
            f"Cannot {action}: {' and '.join(missing)} not installed. Install latest server and Adoptium JDK 25 first.",
            missing=missing,
        )
    return str(managed_java_path(managed_java_dir))
