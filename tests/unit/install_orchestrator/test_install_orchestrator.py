"""Tests for InstallOrchestrator."""

import hashlib
import io
import zipfile
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, Mock

import pytest

from hytale_manager.archive_extractor import ArchiveExtractor
from hytale_manager.exceptions import ChecksumMismatchError, ConflictError
from hytale_manager.install_orchestrator import InstallOrchestrator
from hytale_manager.install_orchestrator_helpers import InstallMetadataFile, ManifestCache, locate_downloaded_layout
from hytale_manager.models import InstalledServerMetadata, VersionManifest


def _server_zip(jar_bytes=b"server-jar"):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("Server/HytaleServer.jar", jar_bytes)
        archive.writestr("Server/config/readme.txt", "hello")
        archive.writestr("Assets.zip", b"assets")
    return buffer.getvalue()


class RecordingGuard:
    def __init__(self):
        self.messages = []

    @asynccontextmanager
    async def installing(self, conflict_message):
        self.messages.append(conflict_message)
        yield


class FakeDownloads:
    def __init__(self, body):
        self.body = body
        self.calls = []

    async def download_file_with_progress(self, url, destination, timeout_seconds, *, cache_key=None, expected_sha256=None):
        self.calls.append({"url": url, "cache_key": cache_key, "expected_sha256": expected_sha256})
        destination.write_bytes(self.body)


def _orchestrator(config, *, manifest, body, guard=None):
    lines = []

    async def with_token(operation):
        return await operation("token")

    credentials = Mock()
    credentials.with_downloader_token = AsyncMock(side_effect=with_token)
    credentials.usable_access_token = AsyncMock(return_value=None)
    account_data = Mock()
    account_data.fetch_manifest = AsyncMock(return_value=manifest)
    account_data.get_signed_asset_url = AsyncMock(return_value="https://cdn.example.test/server.zip?sig=1")
    downloads = FakeDownloads(body)
    orchestrator = InstallOrchestrator(
        config,
        guard or RecordingGuard(),
        credentials,
        account_data,
        downloads,
        ArchiveExtractor(lambda text, source: lines.append(text), which=lambda name: None),
        lines.append,
    )
    return orchestrator, downloads, account_data, lines


def _manifest(body, version="2026.01.15-abc"):
    return VersionManifest(version=version, download_url="builds/release/server.zip", sha256=hashlib.sha256(body).hexdigest())


@pytest.mark.asyncio
async def test_install_places_server_files_and_records_version(manager_config):
    body = _server_zip()
    guard = RecordingGuard()
    orchestrator, downloads, account_data, lines = _orchestrator(manager_config, manifest=_manifest(body), body=body, guard=guard)

    result = await orchestrator.install()

    assert result.to_dict() == {"installed": True, "version": "2026.01.15-abc", "updated": False, "applied": True}
    assert guard.messages == ["Server must be stopped before installation."]
    assert (manager_config.server_dir / "HytaleServer.jar").read_bytes() == b"server-jar"
    assert (manager_config.server_dir / "config" / "readme.txt").read_text() == "hello"
    assert (manager_config.server_dir / "Assets.zip").read_bytes() == b"assets"
    assert downloads.calls[0]["cache_key"] == "hytale-release-2026.01.15-abc"
    account_data.get_signed_asset_url.assert_awaited_once_with("token", "builds/release/server.zip")
    metadata = await InstallMetadataFile(manager_config.server_dir).read()
    assert (metadata.patchline, metadata.version) == ("release", "2026.01.15-abc")
    assert "Checksum valid." in lines
    assert not [path for path in manager_config.data_dir.iterdir() if path.name.startswith("install-")]


@pytest.mark.asyncio
async def test_second_install_without_new_version_is_a_no_op(manager_config):
    body = _server_zip()
    orchestrator, downloads, _, lines = _orchestrator(manager_config, manifest=_manifest(body), body=body)

    await orchestrator.install()
    second = await orchestrator.install()

    assert second.applied is False
    assert second.updated is False
    assert len(downloads.calls) == 1
    assert "Server is already on latest patchline release version 2026.01.15-abc; skipping install." in lines


@pytest.mark.asyncio
async def test_new_version_is_reported_as_update(manager_config):
    body = _server_zip(b"new-jar")
    orchestrator, _, _, _ = _orchestrator(manager_config, manifest=_manifest(body, version="2"), body=body)
    manager_config.server_dir.mkdir(parents=True, exist_ok=True)
    (manager_config.server_dir / "HytaleServer.jar").write_bytes(b"old-jar")
    (manager_config.server_dir / "Assets.zip").write_bytes(b"old-assets")
    await InstallMetadataFile(manager_config.server_dir).write(InstalledServerMetadata("release", "1", "2026-01-01T00:00:00Z"))

    result = await orchestrator.install()

    assert (result.applied, result.updated, result.version) == (True, True, "2")
    assert (manager_config.server_dir / "HytaleServer.jar").read_bytes() == b"new-jar"


@pytest.mark.asyncio
async def test_checksum_mismatch_aborts_without_touching_server_dir(manager_config):
    body = _server_zip()
    manifest = VersionManifest(version="3", download_url="builds/server.zip", sha256="0" * 64)
    orchestrator, _, _, lines = _orchestrator(manager_config, manifest=manifest, body=body)

    with pytest.raises(ChecksumMismatchError):
        await orchestrator.install()

    assert not (manager_config.server_dir / "HytaleServer.jar").exists()
    assert await InstallMetadataFile(manager_config.server_dir).read() is None
    assert any(line.startswith("Installation failed: Checksum mismatch") for line in lines)
    assert not [path for path in manager_config.data_dir.iterdir() if path.name.startswith("install-")]


@pytest.mark.asyncio
async def test_guard_conflict_propagates(manager_config):
    class BusyGuard:
        @asynccontextmanager
        async def installing(self, conflict_message):
            raise ConflictError(conflict_message)
            yield

    body = _server_zip()
    orchestrator, downloads, _, _ = _orchestrator(manager_config, manifest=_manifest(body), body=body, guard=BusyGuard())

    with pytest.raises(ConflictError):
        await orchestrator.install()
    assert downloads.calls == []


@pytest.mark.asyncio
async def test_availability_without_credentials(manager_config):
    body = _server_zip()
    orchestrator, _, account_data, _ = _orchestrator(manager_config, manifest=_manifest(body), body=body)

    availability = await orchestrator.get_install_availability()

    assert availability.patchline == "release"
    assert availability.installed_version is None
    assert availability.latest_version is None
    assert availability.update_available is True
    account_data.fetch_manifest.assert_not_called()


@pytest.mark.asyncio
async def test_availability_uses_cached_manifest_after_install(manager_config):
    body = _server_zip()
    orchestrator, _, _, _ = _orchestrator(manager_config, manifest=_manifest(body), body=body)
    await orchestrator.install()

    availability = await orchestrator.get_install_availability()

    assert availability.installed_version == "2026.01.15-abc"
    assert availability.latest_version == "2026.01.15-abc"
    assert availability.update_available is False


def test_manifest_cache_expires():
    now = [0.0]
    cache = ManifestCache(ttl_seconds=60, clock=lambda: now[0])
    manifest = VersionManifest("1", "x", "y")
    cache.put("release", manifest)

    assert cache.get("release") is manifest
    assert cache.get("beta") is None
    now[0] = 61
    assert cache.get("release") is None


@pytest.mark.asyncio
async def test_layout_locator_finds_nested_layout(tmp_path):
    nested = tmp_path / "bundle" / "inner"
    (nested / "server").mkdir(parents=True)
    (nested / "server" / "HytaleServer.jar").write_bytes(b"jar")
    (nested / "Assets.zip").write_bytes(b"assets")

    layout = await locate_downloaded_layout(tmp_path)

    assert layout.server_dir == nested / "server"
    assert layout.assets_path == nested / "Assets.zip"
    assert await locate_downloaded_layout(tmp_path / "bundle" / "inner" / "server") is None
