"""Root pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from hytale_manager.broadcast import SinkRelay
from hytale_manager.config import ManagerConfig, ensure_directories, runtime
from hytale_manager.terminal import TerminalBuffer
from tests.helpers.hytale_fakes import RecordingSink


@pytest.fixture(autouse=True)
def _isolated_dotenv(monkeypatch):
    """Keep developer .env files out of configuration lookups."""
    monkeypatch.setattr(runtime, "_DOTENV_CANDIDATES", ())
    runtime.reset_default_values()
    yield
    runtime.reset_default_values()


@pytest.fixture
def manager_config(tmp_path) -> ManagerConfig:
    config = ManagerConfig.for_data_dir(
        tmp_path / "data",
        shutdown_timeout_seconds=0.2,
        terminate_timeout_seconds=0.2,
    )
    ensure_directories(config)
    return config


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def relay(sink) -> SinkRelay:
    return SinkRelay(sink)


@pytest.fixture
def terminal(relay) -> TerminalBuffer:
    return TerminalBuffer(200, relay)
