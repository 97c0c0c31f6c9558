"""Tests for lifecycle readiness checks."""

import pytest

from hytale_manager.exceptions import ConflictError
from hytale_manager.process_supervisor_helpers import (
    assert_lifecycle_ready,
    is_server_installed,
    managed_java_command_if_installed,
    missing_prerequisites,
)
from tests.helpers.hytale_fakes import install_java_runtime, install_server_files


def test_missing_prerequisites_lists_both_labels(manager_config):
    assert missing_prerequisites(manager_config.server_dir, manager_config.managed_java_dir) == [
        "server files",
        "Adoptium JDK 25",
    ]


def test_server_requires_jar_and_assets(manager_config):
    manager_config.server_dir.mkdir(parents=True, exist_ok=True)
    (manager_config.server_dir / "HytaleServer.jar").write_bytes(b"jar")

    assert not is_server_installed(manager_config.server_dir)

    (manager_config.server_dir / "Assets.zip").write_bytes(b"zip")
    assert is_server_installed(manager_config.server_dir)


def test_non_executable_java_is_not_installed(manager_config):
    java = manager_config.managed_java_dir / "bin" / "java"
    java.parent.mkdir(parents=True, exist_ok=True)
    java.write_text("")
    java.chmod(0o644)

    assert managed_java_command_if_installed(manager_config.managed_java_dir) is None


def test_assert_lifecycle_ready_names_only_missing_items(manager_config):
    install_java_runtime(manager_config)

    with pytest.raises(ConflictError) as exc_info:
        assert_lifecycle_ready("restart", manager_config.server_dir, manager_config.managed_java_dir)

    assert exc_info.value.message == (
        "Cannot restart: server files not installed. Install latest server and Adoptium JDK 25 first."
    )
    assert exc_info.value.missing == ["server files"]


def test_assert_lifecycle_ready_returns_java_command(manager_config):
    java = install_java_runtime(manager_config)
    install_server_files(manager_config)

    assert assert_lifecycle_ready("start", manager_config.server_dir, manager_config.managed_java_dir) == str(java)
