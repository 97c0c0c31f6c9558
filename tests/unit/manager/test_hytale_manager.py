"""Tests for the HytaleManager facade."""

import asyncio
import dataclasses

import pytest
import pytest_asyncio

from hytale_manager.exceptions import ConflictError, UpstreamError
from hytale_manager.manager import HytaleManager, build_components, create_manager
from hytale_manager.models import JavaInstallResult, ProcessStatus, RuntimeSettingsUpdate
from hytale_manager.settings_store import InMemorySettingsStore
from tests.helpers.hytale_fakes import (
    FakeLauncher,
    FakeNetworkReader,
    FakeProcessReader,
    install_java_runtime,
    install_server_files,
)

SNAPSHOT_KEYS = {
    "status",
    "startedAt",
    "lastExitCode",
    "metricsSampling",
    "installed",
    "javaInstalled",
    "lifecycleReady",
    "installedVersion",
    "latestVersion",
    "updateAvailable",
    "patchline",
    "command",
    "serverDir",
    "bindPort",
    "autoBackupEnabled",
    "backupFrequencyMinutes",
    "backupMaxCount",
    "backupDir",
    "javaMinHeapMb",
    "javaMaxHeapMb",
    "javaExtraArgs",
    "metricsSampleIntervalMs",
    "metricsHistoryLimit",
    "metrics",
    "terminal",
}


def _build_kwargs(sink, launcher):
    return dict(sink=sink, launcher=launcher, process_reader=FakeProcessReader(), network_reader=FakeNetworkReader())


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest_asyncio.fixture
async def manager(manager_config, sink, launcher):
    manager = create_manager(manager_config, InMemorySettingsStore(), **_build_kwargs(sink, launcher))
    yield manager
    await manager.close()


@pytest.mark.asyncio
async def test_snapshot_before_installation(manager, manager_config):
    snapshot = await manager.snapshot()

    assert set(snapshot) == SNAPSHOT_KEYS
    assert snapshot["status"] == "stopped"
    assert snapshot["installed"] is False
    assert snapshot["javaInstalled"] is False
    assert snapshot["lifecycleReady"] is False
    assert snapshot["updateAvailable"] is True
    assert snapshot["latestVersion"] is None
    assert snapshot["patchline"] == "release"
    assert snapshot["command"].startswith("Install Adoptium JDK 25 first, then run: <managed-java> ")
    assert snapshot["serverDir"] == str(manager_config.server_dir)


@pytest.mark.asyncio
async def test_snapshot_when_ready_shows_java_command(manager, manager_config):
    java = install_java_runtime(manager_config)
    install_server_files(manager_config)

    snapshot = await manager.snapshot()

    assert snapshot["lifecycleReady"] is True
    assert snapshot["command"].startswith(str(java))
    assert f"0.0.0.0:{snapshot['bindPort']}" in snapshot["command"]


@pytest.mark.asyncio
async def test_full_lifecycle_emits_ordered_states(manager, manager_config, sink, launcher):
    install_java_runtime(manager_config)
    install_server_files(manager_config)

    await manager.start()
    manager.send_command("say hello")
    await manager.stop()

    assert sink.statuses() == ["starting", "running", "stopping", "stopped"]
    assert launcher.current.written == ["say hello", "/stop"]
    assert launcher.current.signals == []
    assert manager.status is ProcessStatus.STOPPED


@pytest.mark.asyncio
async def test_update_settings_reports_and_returns_snapshot(manager, manager_config):
    snapshot = await manager.update_server_runtime_settings(RuntimeSettingsUpdate(bind_port=5600, auto_backup_enabled=True))

    assert snapshot["bindPort"] == 5600
    assert snapshot["autoBackupEnabled"] is True
    assert manager_config.backups_dir.is_dir()
    texts = manager.terminal.texts()
    assert any(text.startswith("Runtime settings updated: bind=0.0.0.0:5600") for text in texts)
    assert "Runtime settings will apply fully on the next server restart." not in texts


@pytest.mark.asyncio
async def test_update_settings_while_running_warns_about_restart(manager, manager_config):
    install_java_runtime(manager_config)
    install_server_files(manager_config)
    await manager.start()

    await manager.update_server_runtime_settings(RuntimeSettingsUpdate(backup_max_count=3))

    assert "Runtime settings will apply fully on the next server restart." in manager.terminal.texts()
    await manager.stop()


@pytest.mark.asyncio
async def test_mod_upload_progress_payload(manager):
    upload_id = await manager.start_mod_upload("mod.jar", 4)

    progress = await manager.append_mod_upload(upload_id, "YWJj")

    assert progress == {"received": 3, "size": 4}
    await manager.cancel_mod_upload(upload_id)


class _FakeOrchestrator:
    def __init__(self, config, error=None):
        self._config = config
        self._error = error
        self.calls = 0
        self.release = asyncio.Event()
        self.release.set()

    async def install(self):
        self.calls += 1
        await self.release.wait()
        if self._error is not None:
            raise self._error
        install_server_files(self._config)


class _FakeJavaInstaller:
    def __init__(self, config, preinstalled=False):
        self._config = config
        self.calls = 0
        if preinstalled:
            install_java_runtime(config)

    def installed_command(self):
        java = self._config.managed_java_dir / "bin" / "java"
        return str(java) if java.is_file() else None

    async def install(self):
        self.calls += 1
        java = install_java_runtime(self._config)
        return JavaInstallResult(java_command=str(java), java_home=str(self._config.managed_java_dir), release_name="jdk-25")


def _manager_with(manager_config, sink, orchestrator, java_installer):
    components = build_components(manager_config, InMemorySettingsStore(), **_build_kwargs(sink, FakeLauncher()))
    return HytaleManager(dataclasses.replace(components, orchestrator=orchestrator, java_installer=java_installer))


@pytest.mark.asyncio
async def test_initialization_installs_server_and_java(manager_config, sink):
    orchestrator = _FakeOrchestrator(manager_config)
    java = _FakeJavaInstaller(manager_config)
    manager = _manager_with(manager_config, sink, orchestrator, java)

    await manager.start_initialization()

    texts = manager.terminal.texts()
    assert texts[0] == "Starting automatic initialization (server + Adoptium JDK 25)."
    assert texts[-1] == "Automatic initialization complete. Server is ready to start."
    assert orchestrator.calls == 1
    assert java.calls == 1
    await manager.close()


@pytest.mark.asyncio
async def test_initialization_skips_installed_java_and_reports_failures(manager_config, sink):
    orchestrator = _FakeOrchestrator(manager_config, error=UpstreamError("manifest unavailable"))
    java = _FakeJavaInstaller(manager_config, preinstalled=True)
    manager = _manager_with(manager_config, sink, orchestrator, java)

    await manager.start_initialization()

    texts = manager.terminal.texts()
    assert "Automatic server installation failed: manifest unavailable" in texts
    assert "Adoptium JDK 25 is already installed; skipping Java download." in texts
    assert texts[-1] == (
        "Automatic initialization completed with missing prerequisites. Review terminal logs and retry failed steps."
    )
    assert java.calls == 0
    await manager.close()


@pytest.mark.asyncio
async def test_duplicate_initialization_is_ignored(manager_config, sink):
    orchestrator = _FakeOrchestrator(manager_config)
    orchestrator.release.clear()
    manager = _manager_with(manager_config, sink, orchestrator, _FakeJavaInstaller(manager_config))

    task = manager.start_initialization()
    assert manager.start_initialization() is None
    assert "Initialization is already running; duplicate trigger ignored." in manager.terminal.texts()

    orchestrator.release.set()
    await task
    assert orchestrator.calls == 1
    await manager.close()


@pytest.mark.asyncio
async def test_install_conflicts_while_running(manager, manager_config):
    install_java_runtime(manager_config)
    install_server_files(manager_config)
    await manager.start()

    with pytest.raises(ConflictError, match="Server must be stopped before installation."):
        await manager.install()

    assert manager.status is ProcessStatus.RUNNING
    await manager.stop()


@pytest.mark.asyncio
async def test_initialize_if_needed_only_runs_with_missing_prerequisites(manager_config, sink):
    orchestrator = _FakeOrchestrator(manager_config)
    java = _FakeJavaInstaller(manager_config)
    manager = _manager_with(manager_config, sink, orchestrator, java)

    task = manager.initialize_if_needed()
    assert task is not None
    await task
    assert manager.initialize_if_needed() is None
    assert orchestrator.calls == 1
    await manager.close()
