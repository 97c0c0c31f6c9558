"""Facade wiring the supervisor, installers, sampler and file managers together.

``HytaleManager`` is the single object the command dispatcher talks to. All
components share one terminal buffer and one sink relay, so late rebinding
through ``set_sink`` reaches every emitter.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import aiofiles.os

from .archive_extractor import ArchiveExtractor
from .backup_manager import BackupManager
from .broadcast import BroadcastSink, SinkRelay
from .config import ManagerConfig
from .credential_store import CredentialStore
from .credential_store_helpers import CredentialsFile, DeviceAuthorizationFlow, OAuthClient, try_open_external_url
from .download_engine import DownloadEngine
from .download_engine_helpers import DownloadCache
from .exceptions import ManagerError
from .http_session import HttpSessionManager
from .install_orchestrator import InstallOrchestrator
from .install_orchestrator_helpers import AccountDataClient
from .java_runtime_installer import JavaRuntimeInstaller
from .java_runtime_installer_helpers import AdoptiumClient
from .log_files import DEFAULT_TAIL_LINES, LogFiles
from .metrics_sampler import MetricsSampler
from .metrics_sampler_helpers import (
    NetworkCounterReader,
    ProcessMetricsReader,
    PsutilProcessMetricsReader,
    select_network_counter_reader,
)
from .mod_manager import ModManager
from .models import (
    BackupEntry,
    InstallResult,
    JavaInstallResult,
    LogFileInfo,
    ModFile,
    ProcessStatus,
    RuntimeSettingsUpdate,
    WhitelistState,
)
from .process_supervisor import ProcessSupervisor
from .process_supervisor_helpers import ProcessLauncher, is_server_installed, managed_java_command_if_installed
from .runtime_settings import RuntimeSettingsService, describe_settings
from .settings_store import SettingsStore
from .terminal import TerminalBuffer
from .whitelist import WhitelistManager
from .whitelist_helpers import PlayerLookupClient, PlayerNameCache

logger = logging.getLogger(__name__)

PLAYER_NAME_CACHE_FILE = ".hytale-player-name-cache.json"


@dataclass
class ManagerComponents:
    """Everything ``HytaleManager`` delegates to; built by ``build_components``."""

    config: ManagerConfig
    sink: SinkRelay
    terminal: TerminalBuffer
    http: HttpSessionManager
    runtime_settings: RuntimeSettingsService
    metrics: MetricsSampler
    supervisor: ProcessSupervisor
    orchestrator: InstallOrchestrator
    java_installer: JavaRuntimeInstaller
    mods: ModManager
    logs: LogFiles
    backups: BackupManager
    whitelist: WhitelistManager


def build_components(
    config: ManagerConfig,
    settings_store: SettingsStore,
    *,
    sink: Optional[BroadcastSink] = None,
    launcher: Optional[ProcessLauncher] = None,
    process_reader: Optional[ProcessMetricsReader] = None,
    network_reader: Optional[NetworkCounterReader] = None,
    player_lookup: Optional[PlayerLookupClient] = None,
    open_browser: Callable[[str], bool] = try_open_external_url,
) -> ManagerComponents:
    relay = SinkRelay(sink)
    terminal = TerminalBuffer(config.terminal_buffer_lines, relay)
    report = terminal.system
    http = HttpSessionManager(connection_timeout=config.downloader.api_timeout_seconds)

    runtime_settings = RuntimeSettingsService(settings_store, config.start_args)
    metrics = MetricsSampler(
        process_reader or PsutilProcessMetricsReader(),
        network_reader or select_network_counter_reader(),
        relay,
        interval_seconds=config.metrics_sample_interval_seconds,
        history_limit=config.metrics_history_limit,
    )
    supervisor = ProcessSupervisor(config, runtime_settings, metrics, terminal, relay, launcher=launcher)

    credentials_file = CredentialsFile(config.credentials_path, report)
    oauth = OAuthClient(http, config.downloader)
    device_flow = DeviceAuthorizationFlow(oauth, credentials_file, config.downloader, report, relay, open_browser=open_browser)
    credentials = CredentialStore(config.downloader, credentials_file, oauth, device_flow, report)

    downloads = DownloadEngine(
        http,
        DownloadCache(config.download_cache_dir),
        report,
        concurrency=config.effective_download_concurrency,
        progress_interval_seconds=config.effective_progress_interval_seconds,
    )
    extractor = ArchiveExtractor(terminal.push)
    orchestrator = InstallOrchestrator(
        config, supervisor, credentials, AccountDataClient(http, config.downloader, report), downloads, extractor, report
    )
    java_installer = JavaRuntimeInstaller(
        config,
        supervisor,
        AdoptiumClient(http, config.java, api_timeout_seconds=config.downloader.api_timeout_seconds),
        downloads,
        extractor,
        report,
    )

    return ManagerComponents(
        config=config,
        sink=relay,
        terminal=terminal,
        http=http,
        runtime_settings=runtime_settings,
        metrics=metrics,
        supervisor=supervisor,
        orchestrator=orchestrator,
        java_installer=java_installer,
        mods=ModManager(config.server_dir, config.uploads_dir, report),
        logs=LogFiles(config.server_dir, terminal.rendered),
        backups=BackupManager(config, lambda: supervisor.status, extractor, report),
        whitelist=WhitelistManager(
            config.server_dir,
            PlayerNameCache(config.data_dir / PLAYER_NAME_CACHE_FILE),
            player_lookup or PlayerLookupClient(http, api_timeout_seconds=config.downloader.api_timeout_seconds),
            relay,
            report,
        ),
    )


class HytaleManager:
    def __init__(self, components: ManagerComponents) -> None:
        self._components = components
        self.config = components.config
        self.supervisor = components.supervisor
        self.orchestrator = components.orchestrator
        self.java_installer = components.java_installer
        self.runtime_settings = components.runtime_settings
        self.metrics = components.metrics
        self.terminal = components.terminal
        self.mods = components.mods
        self.logs = components.logs
        self.backups = components.backups
        self.whitelist = components.whitelist
        self._initialization: Optional[asyncio.Task] = None

    def set_sink(self, sink: Optional[BroadcastSink]) -> None:
        self.supervisor.set_sink(sink)

    @property
    def status(self) -> ProcessStatus:
        return self.supervisor.status

    def _report(self, text: str) -> None:
        self.terminal.system(text)

    async def snapshot(self) -> Dict[str, Any]:
        java_command = managed_java_command_if_installed(self.config.managed_java_dir)
        installed = is_server_installed(self.config.server_dir)
        availability = await self.orchestrator.get_install_availability()
        settings = self.runtime_settings.read()
        start_args = self.runtime_settings.launch_arguments(str(self.config.backups_dir), settings)
        command = (
            " ".join([java_command, *start_args])
            if java_command
            else f"Install Adoptium JDK 25 first, then run: <managed-java> {' '.join(start_args)}"
        )
        state = self.supervisor.state_event().to_payload()

        return {
            **state,
            "installed": installed,
            "javaInstalled": java_command is not None,
            "lifecycleReady": installed and java_command is not None,
            "installedVersion": availability.installed_version,
            "latestVersion": availability.latest_version,
            "updateAvailable": availability.update_available,
            "patchline": availability.patchline,
            "command": command,
            "serverDir": str(self.config.server_dir),
            "bindPort": settings.bind_port,
            "autoBackupEnabled": settings.auto_backup_enabled,
            "backupFrequencyMinutes": settings.backup_frequency_minutes,
            "backupMaxCount": settings.backup_max_count,
            "backupDir": str(self.config.backups_dir),
            "javaMinHeapMb": settings.java_min_heap_mb,
            "javaMaxHeapMb": settings.java_max_heap_mb,
            "javaExtraArgs": settings.java_extra_args,
            "metricsSampleIntervalMs": int(round(self.metrics.interval_seconds * 1000)),
            "metricsHistoryLimit": self.metrics.history_limit,
            "metrics": [point.to_payload() for point in self.metrics.history],
            "terminal": self.terminal.rendered(),
        }

    async def install(self) -> InstallResult:
        return await self.orchestrator.install()

    async def install_managed_java_runtime(self) -> JavaInstallResult:
        return await self.java_installer.install()

    async def start(self) -> None:
        await self.supervisor.start()

    async def stop(self, force: bool = False) -> None:
        await self.supervisor.stop(force)

    async def restart(self) -> None:
        await self.supervisor.restart()

    def send_command(self, value: str) -> None:
        self.supervisor.send_command(value)

    async def update_server_runtime_settings(self, update: RuntimeSettingsUpdate) -> Dict[str, Any]:
        settings = self.runtime_settings.update(update)
        await aiofiles.os.makedirs(self.config.backups_dir, exist_ok=True)
        self._report(describe_settings(settings))
        if self.status in (ProcessStatus.RUNNING, ProcessStatus.STARTING):
            self._report("Runtime settings will apply fully on the next server restart.")
        return await self.snapshot()

    def start_initialization(self) -> Optional[asyncio.Task]:
        """Install the server and the managed runtime in the background; duplicates are ignored."""
        if self._initialization is not None and not self._initialization.done():
            self._report("Initialization is already running; duplicate trigger ignored.")
            return None
        self._initialization = asyncio.get_running_loop().create_task(self._run_initialization())
        return self._initialization

    def initialize_if_needed(self) -> Optional[asyncio.Task]:
        """Start background initialization when the server or the managed runtime is missing."""
        if is_server_installed(self.config.server_dir) and self.java_installer.installed_command() is not None:
            return None
        return self.start_initialization()

    async def _run_initialization(self) -> None:
        self._report("Starting automatic initialization (server + Adoptium JDK 25).")

        try:
            await self.install()
        except ManagerError as exc:
            self._report(f"Automatic server installation failed: {exc.message}")
        except Exception as exc:
            logger.exception("Unexpected error during automatic server installation")
            self._report(f"Automatic server installation failed: {exc}")

        try:
            if self.java_installer.installed_command():
                self._report("Adoptium JDK 25 is already installed; skipping Java download.")
            else:
                await self.install_managed_java_runtime()
        except ManagerError as exc:
            self._report(f"Automatic Java installation failed: {exc.message}")
        except Exception as exc:
            logger.exception("Unexpected error during automatic Java installation")
            self._report(f"Automatic Java installation failed: {exc}")

        ready = is_server_installed(self.config.server_dir) and self.java_installer.installed_command() is not None
        if ready:
            self._report("Automatic initialization complete. Server is ready to start.")
        else:
            self._report(
                "Automatic initialization completed with missing prerequisites. Review terminal logs and retry failed steps."
            )

    async def list_mods(self) -> List[ModFile]:
        return await self.mods.list_mods()

    async def enable_mod(self, filename: str) -> None:
        await self.mods.enable_mod(filename)

    async def disable_mod(self, filename: str) -> None:
        await self.mods.disable_mod(filename)

    async def delete_mod(self, filename: str) -> None:
        await self.mods.delete_mod(filename)

    async def start_mod_upload(self, filename: str, size: int) -> str:
        return await self.mods.start_upload(filename, size)

    async def append_mod_upload(self, upload_id: str, chunk_base64: str) -> Dict[str, int]:
        session = await self.mods.append_upload(upload_id, chunk_base64)
        return {"received": session.received, "size": session.size}

    async def finish_mod_upload(self, upload_id: str) -> ModFile:
        return await self.mods.finish_upload(upload_id)

    async def cancel_mod_upload(self, upload_id: str) -> None:
        await self.mods.cancel_upload(upload_id)

    async def list_log_files(self) -> List[LogFileInfo]:
        return await self.logs.list_files()

    async def read_log_file(self, name: str, tail_lines: int = DEFAULT_TAIL_LINES) -> str:
        return await self.logs.read(name, tail_lines)

    async def list_backups(self) -> List[BackupEntry]:
        return await self.backups.list_backups()

    async def create_backup(self, note: str = "") -> BackupEntry:
        return await self.backups.create_backup(note)

    async def delete_backup(self, backup_id: str) -> None:
        await self.backups.delete_backup(backup_id)

    async def restore_backup(self, backup_id: str) -> None:
        await self.backups.restore_backup(backup_id)

    async def list_whitelist(self) -> WhitelistState:
        return await self.whitelist.list_whitelist()

    async def set_whitelist_enabled(self, enabled: bool) -> WhitelistState:
        return await self.whitelist.set_enabled(enabled)

    async def add_whitelist_entry(self, value: str) -> WhitelistState:
        return await self.whitelist.add_entry(value)

    async def remove_whitelist_entry(self, uuid: str) -> WhitelistState:
        return await self.whitelist.remove_entry(uuid)

    async def close(self) -> None:
        """Stop the server (if running) and release HTTP resources."""
        try:
            await self.supervisor.shutdown()
        finally:
            if self._initialization is not None and not self._initialization.done():
                self._initialization.cancel()
            await self._components.http.close()


def create_manager(config: ManagerConfig, settings_store: SettingsStore, **kwargs: Any) -> HytaleManager:
    return HytaleManager(build_components(config, settings_store, **kwargs))


__all__ = ["HytaleManager", "ManagerComponents", "build_components", "create_manager"]
