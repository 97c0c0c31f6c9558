"""Server installation and update through the native downloader.

``install`` runs while the supervisor reports ``installing``: it resolves the
latest manifest for the configured patchline, skips the work when that
version is already on disk, and otherwise downloads, verifies, extracts and
copies the server files before recording the installed version.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Protocol

import aiofiles.os

from .archive_extractor import ArchiveExtractor
from .config import ManagerConfig
from .credential_store import CredentialStore
from .download_engine import DownloadEngine
from .download_engine_helpers import validate_sha256
from .exceptions import HostEnvironmentError, ManagerError
from .install_orchestrator_helpers import AccountDataClient, InstallMetadataFile, ManifestCache, locate_downloaded_layout
from .models import InstallAvailability, InstalledServerMetadata, InstallResult, VersionManifest
from .path_utils import sanitize_filename, workspace_path
from .process_supervisor_helpers.prerequisites import is_server_installed

logger = logging.getLogger(__name__)


class InstallGuard(Protocol):
    def installing(self, conflict_message: str) -> AbstractAsyncContextManager: ...


class InstallOrchestrator:
    def __init__(
        self,
        config: ManagerConfig,
        guard: InstallGuard,
        credentials: CredentialStore,
        account_data: AccountDataClient,
        downloads: DownloadEngine,
        extractor: ArchiveExtractor,
        report: Callable[[str], object],
        *,
        manifest_cache: Optional[ManifestCache] = None,
    ) -> None:
        self._config = config
        self._guard = guard
        self._credentials = credentials
        self._account_data = account_data
        self._downloads = downloads
        self._extractor = extractor
        self._report = report
        self._manifest_cache = manifest_cache or ManifestCache()
        self.metadata_file = InstallMetadataFile(config.server_dir)

    @property
    def patchline(self) -> str:
        return self._config.downloader.patchline.strip() or "release"

    def is_installed(self) -> bool:
        return is_server_installed(self._config.server_dir)

    async def resolve_latest_manifest(self, *, force_refresh: bool) -> VersionManifest:
        patchline = self.patchline
        if not force_refresh:
            cached = self._manifest_cache.get(patchline)
            if cached is not None:
                return cached

        manifest = await self._credentials.with_downloader_token(
            lambda token: self._account_data.fetch_manifest(token, patchline, log_to_terminal=True)
        )
        self._manifest_cache.put(patchline, manifest)
        return manifest

    async def _resolve_latest_manifest_quietly(self) -> Optional[VersionManifest]:
        patchline = self.patchline
        cached = self._manifest_cache.get(patchline)
        if cached is not None:
            return cached

        token = await self._credentials.usable_access_token()
        if token is None:
            return None
        try:
            manifest = await self._account_data.fetch_manifest(token, patchline, log_to_terminal=False)
        except ManagerError as exc:
            logger.debug("Latest version lookup failed: %s", exc.message)
            return None
        self._manifest_cache.put(patchline, manifest)
        return manifest

    async def get_install_availability(self) -> InstallAvailability:
        """Installed vs. latest version without ever prompting for authorization."""
        installed = self.is_installed()
        metadata = await self.metadata_file.read() if installed else None
        installed_version = metadata.version if metadata else None

        try:
            latest = await self._resolve_latest_manifest_quietly()
        except ManagerError as exc:
            logger.debug("Install availability degraded: %s", exc.message)
            latest = None
        latest_version = latest.version if latest else None

        return InstallAvailability(
            patchline=self.patchline,
            installed_version=installed_version,
            latest_version=latest_version,
            update_available=not installed or (latest_version is not None and installed_version != latest_version),
        )

    async def install(self) -> InstallResult:
        """Install or update the server; 409 unless the supervisor is stopped."""
        async with self._guard.installing("Server must be stopped before installation."):
            try:
                return await self._install()
            except Exception as exc:
                message = exc.message if isinstance(exc, ManagerError) else str(exc)
                self._report(f"Installation failed: {message}")
                raise

    async def _install(self) -> InstallResult:
        installed_meta = await self.metadata_file.read()
        manifest = await self.resolve_latest_manifest(force_refresh=True)
        patchline = self.patchline
        was_installed = self.is_installed()

        if (
            was_installed
            and installed_meta is not None
            and installed_meta.patchline == patchline
            and installed_meta.version == manifest.version
        ):
            self._report(f"Server is already on latest patchline {patchline} version {manifest.version}; skipping install.")
            return InstallResult(installed=True, version=manifest.version, updated=False, applied=False)

        await self._install_from_downloader(patchline, manifest)
        self._report(f"Installation completed in {self._config.server_dir}")

        await self.metadata_file.write(
            InstalledServerMetadata(
                patchline=patchline,
                version=manifest.version,
                installed_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            )
        )
        return InstallResult(installed=self.is_installed(), version=manifest.version, updated=was_installed, applied=True)

    async def _install_from_downloader(self, patchline: str, manifest: VersionManifest) -> None:
        workspace = workspace_path(self._config.data_dir, "install")
        await aiofiles.os.makedirs(workspace, exist_ok=True)
        try:
            self._report(f"Native downloader mode enabled (patchline: {patchline}, version: {manifest.version})")
            signed_url = await self._credentials.with_downloader_token(
                lambda token: self._account_data.get_signed_asset_url(token, manifest.download_url)
            )

            archive = workspace / sanitize_filename(f"{patchline}-{manifest.version}.zip")
            await self._downloads.download_file_with_progress(
                signed_url,
                archive,
                self._config.downloader.download_timeout_seconds,
                cache_key=f"hytale-{patchline}-{manifest.version}",
                expected_sha256=manifest.sha256,
            )

            self._report("Validating checksum...")
            await validate_sha256(archive, manifest.sha256)
            self._report("Checksum valid.")

            await self._extractor.extract(archive, workspace, timeout_seconds=self._config.downloader.extract_timeout_seconds)
            await aiofiles.os.remove(archive)

            layout = await locate_downloaded_layout(workspace)
            if layout is None:
                raise HostEnvironmentError("Downloaded archive extracted, but server layout was not found.")

            await self._copy_layout(layout.server_dir, layout.assets_path)
        finally:
            await asyncio.to_thread(shutil.rmtree, workspace, True)

    async def _copy_layout(self, server_source: Path, assets_source: Path) -> None:
        server_dir = self._config.server_dir
        await asyncio.to_thread(shutil.copytree, server_source, server_dir, dirs_exist_ok=True)
        await asyncio.to_thread(shutil.copyfile, assets_source, server_dir / "Assets.zip")
        await aiofiles.os.makedirs(server_dir / "mods", exist_ok=True)
        await aiofiles.os.makedirs(server_dir / "logs", exist_ok=True)


__all__ = ["InstallGuard", "InstallOrchestrator"]
