"""Managed Adoptium Temurin runtime installation.

Concurrent callers share one in-flight installation. The extracted runtime
replaces the managed directory by rename, falling back to a recursive copy
when the workspace and target live on different filesystems.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

import aiofiles
import aiofiles.os

from .archive_extractor import ArchiveExtractor
from .config import ManagerConfig
from .download_engine import DownloadEngine
from .download_engine_helpers import validate_sha256
from .exceptions import HostEnvironmentError, ManagerError
from .install_orchestrator import InstallGuard
from .java_runtime_installer_helpers import AdoptiumClient, AdoptiumPlatform, find_java_home, resolve_adoptium_platform
from .models import JavaInstallResult
from .path_utils import sanitize_filename, workspace_path
from .process_supervisor_helpers.prerequisites import managed_java_command_if_installed, managed_java_path
from .single_flight import SingleFlight

logger = logging.getLogger(__name__)

JAVA_METADATA_FILENAME = ".metadata.json"


class JavaRuntimeInstaller:
    def __init__(
        self,
        config: ManagerConfig,
        guard: InstallGuard,
        adoptium: AdoptiumClient,
        downloads: DownloadEngine,
        extractor: ArchiveExtractor,
        report: Callable[[str], object],
        *,
        platform_resolver: Callable[[], AdoptiumPlatform] = resolve_adoptium_platform,
    ) -> None:
        self._config = config
        self._guard = guard
        self._adoptium = adoptium
        self._downloads = downloads
        self._extractor = extractor
        self._report = report
        self._platform_resolver = platform_resolver
        self._single_flight: SingleFlight[JavaInstallResult] = SingleFlight()

    @property
    def managed_java_dir(self) -> Path:
        return self._config.managed_java_dir

    def installed_command(self) -> Optional[str]:
        return managed_java_command_if_installed(self.managed_java_dir)

    async def install(self) -> JavaInstallResult:
        """Install the managed runtime; concurrent callers receive the same result or error."""
        return await self._single_flight.run(
            self._guarded_install,
            on_join=lambda: self._report("Java installation already in progress; waiting for it to finish..."),
        )

    async def _guarded_install(self) -> JavaInstallResult:
        async with self._guard.installing("Server must be stopped before installing Java."):
            try:
                return await self._install_adoptium_jdk()
            except Exception as exc:
                message = exc.message if isinstance(exc, ManagerError) else str(exc)
                self._report(f"Java installation failed: {message}")
                raise

    async def _install_adoptium_jdk(self) -> JavaInstallResult:
        target = self._platform_resolver()
        workspace = workspace_path(self._config.data_dir, "java-install")
        await aiofiles.os.makedirs(workspace, exist_ok=True)
        feature = self._config.java.feature_version

        try:
            self._report(f"Resolving Adoptium Temurin JDK {feature} for {target.os}/{target.arch}...")
            release = await self._adoptium.fetch_latest_release(target)
            self._report(f"Selected release {release.release_name} ({release.package_name})")

            archive = workspace / sanitize_filename(release.package_name)
            await self._downloads.download_file_with_progress(
                release.download_url,
                archive,
                self._config.java.download_timeout_seconds,
                cache_key=f"adoptium-{release.release_name}-{release.package_name}",
                expected_sha256=release.checksum,
            )

            if release.checksum:
                self._report("Validating Java archive checksum...")
                await validate_sha256(archive, release.checksum)
                self._report("Java archive checksum valid.")
            else:
                self._report("Java archive checksum not provided by API; skipping validation.")

            extract_dir = workspace / "extract"
            await self._extractor.extract(archive, extract_dir, timeout_seconds=self._config.java.extract_timeout_seconds)

            java_home = await find_java_home(extract_dir)
            if java_home is None:
                raise HostEnvironmentError("Could not locate extracted Java home directory.")

            await self._replace_managed_dir(java_home)

            java_command = managed_java_path(self.managed_java_dir)
            if not java_command.is_file():
                raise HostEnvironmentError("Java installation completed, but java binary was not found.")
            if sys.platform != "win32":
                try:
                    os.chmod(java_command, 0o755)
                except OSError as exc:
                    logger.warning("Could not mark %s executable: %s", java_command, exc)

            await self._write_metadata(
                {
                    "installedAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                    "releaseName": release.release_name,
                    "packageName": release.package_name,
                    "downloadUrl": release.download_url,
                    "os": target.os,
                    "arch": target.arch,
                    "featureVersion": feature,
                }
            )

            self._report(f"Installed Java runtime at {self.managed_java_dir}")
            return JavaInstallResult(
                java_command=str(java_command), java_home=str(self.managed_java_dir), release_name=release.release_name
            )
        finally:
            await asyncio.to_thread(shutil.rmtree, workspace, True)

    async def _replace_managed_dir(self, java_home: Path) -> None:
        target = self.managed_java_dir
        await asyncio.to_thread(shutil.rmtree, target, True)
        await aiofiles.os.makedirs(target.parent, exist_ok=True)
        try:
            await aiofiles.os.rename(java_home, target)
        except OSError as exc:
            logger.info("Rename of %s failed (%s); copying instead", java_home, exc)
            await asyncio.to_thread(shutil.copytree, java_home, target, symlinks=True, dirs_exist_ok=True)

    async def _write_metadata(self, metadata: dict) -> None:
        async with aiofiles.open(self.managed_java_dir / JAVA_METADATA_FILENAME, "w", encoding="utf-8") as handle:
            await handle.write(json.dumps(metadata, indent=2))


__all__ = ["JavaRuntimeInstaller"]
