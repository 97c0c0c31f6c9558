"""Tests for the managed Java runtime installer."""

import asyncio
import hashlib
import io
import json
import os
import tarfile
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, Mock

import pytest

from hytale_manager.archive_extractor import ArchiveExtractor
from hytale_manager.config import JavaRuntimeConfig
from hytale_manager.exceptions import ChecksumMismatchError, NotFoundError, ValidationError
from hytale_manager.http_session import HttpResponseData
from hytale_manager.java_runtime_installer import JavaRuntimeInstaller
from hytale_manager.java_runtime_installer_helpers import (
    AdoptiumClient,
    AdoptiumPlatform,
    AdoptiumRelease,
    find_java_home,
    resolve_adoptium_platform,
)


def _jdk_tarball():
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        script = b"#!/bin/sh\necho java\n"
        info = tarfile.TarInfo("jdk-25.0.1+8/bin/java")
        info.size = len(script)
        info.mode = 0o755
        archive.addfile(info, io.BytesIO(script))
        release = b'JAVA_VERSION="25.0.1"\n'
        info = tarfile.TarInfo("jdk-25.0.1+8/release")
        info.size = len(release)
        archive.addfile(info, io.BytesIO(release))
    return buffer.getvalue()


class CountingGuard:
    def __init__(self):
        self.entries = 0

    @asynccontextmanager
    async def installing(self, conflict_message):
        self.entries += 1
        yield


class GatedDownloads:
    def __init__(self, body):
        self.body = body
        self.calls = 0
        self.release = asyncio.Event()
        self.release.set()

    async def download_file_with_progress(self, url, destination, timeout_seconds, *, cache_key=None, expected_sha256=None):
        self.calls += 1
        await self.release.wait()
        destination.write_bytes(self.body)


def _installer(config, *, body, checksum=None):
    lines = []
    adoptium = Mock(spec=AdoptiumClient)
    adoptium.fetch_latest_release = AsyncMock(
        return_value=AdoptiumRelease(
            release_name="jdk-25.0.1+8",
            package_name="OpenJDK25U-jdk_x64_linux_hotspot_25.0.1_8.tar.gz",
            download_url="https://github.example.test/jdk.tar.gz",
            checksum=checksum if checksum is not None else hashlib.sha256(body).hexdigest(),
        )
    )
    downloads = GatedDownloads(body)
    guard = CountingGuard()
    installer = JavaRuntimeInstaller(
        config,
        guard,
        adoptium,
        downloads,
        ArchiveExtractor(lambda text, source: lines.append(text), which=lambda name: None),
        lines.append,
        platform_resolver=lambda: AdoptiumPlatform(os="linux", arch="x64"),
    )
    return installer, downloads, guard, lines


@pytest.mark.asyncio
async def test_install_places_runtime_and_metadata(manager_config):
    installer, _, _, lines = _installer(manager_config, body=_jdk_tarball())

    result = await installer.install()

    java = manager_config.managed_java_dir / "bin" / "java"
    assert result.java_command == str(java)
    assert result.release_name == "jdk-25.0.1+8"
    assert java.is_file() and os.access(java, os.X_OK)
    assert installer.installed_command() == str(java)
    metadata = json.loads((manager_config.managed_java_dir / ".metadata.json").read_text())
    assert metadata["featureVersion"] == 25
    assert metadata["os"] == "linux"
    assert "Java archive checksum valid." in lines
    assert not [path for path in manager_config.data_dir.iterdir() if path.name.startswith("java-install-")]


@pytest.mark.asyncio
async def test_concurrent_installs_share_one_run(manager_config):
    installer, downloads, guard, lines = _installer(manager_config, body=_jdk_tarball())
    downloads.release.clear()

    first = asyncio.ensure_future(installer.install())
    await asyncio.sleep(0.05)
    second = asyncio.ensure_future(installer.install())
    await asyncio.sleep(0)
    downloads.release.set()

    first_result, second_result = await asyncio.gather(first, second)

    assert first_result == second_result
    assert downloads.calls == 1
    assert guard.entries == 1
    assert "Java installation already in progress; waiting for it to finish..." in lines


@pytest.mark.asyncio
async def test_checksum_mismatch_leaves_managed_dir_untouched(manager_config):
    installer, _, _, lines = _installer(manager_config, body=_jdk_tarball(), checksum="f" * 64)

    with pytest.raises(ChecksumMismatchError):
        await installer.install()

    assert not manager_config.managed_java_dir.exists()
    assert installer.installed_command() is None
    assert any(line.startswith("Java installation failed: Checksum mismatch") for line in lines)


@pytest.mark.asyncio
async def test_missing_checksum_skips_validation(manager_config):
    installer, _, _, lines = _installer(manager_config, body=_jdk_tarball(), checksum="")

    await installer.install()

    assert "Java archive checksum not provided by API; skipping validation." in lines


@pytest.mark.asyncio
async def test_adoptium_client_picks_first_package():
    http = Mock()
    http.request = AsyncMock(
        return_value=HttpResponseData(
            status=200,
            text="",
            json_body=[
                {"binary": {}},
                {
                    "release_name": "jdk-25+36",
                    "binary": {"package": {"name": "jdk.tar.gz", "link": "https://example.test/jdk.tar.gz", "checksum": "ab" * 32}},
                },
            ],
        )
    )
    client = AdoptiumClient(http, JavaRuntimeConfig(), api_timeout_seconds=30)

    release = await client.fetch_latest_release(AdoptiumPlatform(os="linux", arch="aarch64"))

    assert release == AdoptiumRelease("jdk-25+36", "jdk.tar.gz", "https://example.test/jdk.tar.gz", "ab" * 32)
    args, kwargs = http.request.await_args
    assert args == ("GET", "https://api.adoptium.net/v3/assets/latest/25/hotspot")
    assert kwargs["params"] == {"architecture": "aarch64", "os": "linux", "image_type": "jdk", "vendor": "eclipse"}


@pytest.mark.asyncio
async def test_adoptium_client_raises_when_no_package():
    http = Mock()
    http.request = AsyncMock(return_value=HttpResponseData(status=200, text="[]", json_body=[]))

    with pytest.raises(NotFoundError):
        await AdoptiumClient(http, JavaRuntimeConfig(), api_timeout_seconds=30).fetch_latest_release(AdoptiumPlatform("mac", "x64"))


def test_resolve_adoptium_platform():
    assert resolve_adoptium_platform("linux", "x86_64") == AdoptiumPlatform("linux", "x64")
    assert resolve_adoptium_platform("darwin", "arm64") == AdoptiumPlatform("mac", "aarch64")
    with pytest.raises(ValidationError):
        resolve_adoptium_platform("sunos5", "x86_64")
    with pytest.raises(ValidationError):
        resolve_adoptium_platform("linux", "riscv64")


@pytest.mark.asyncio
async def test_find_java_home_handles_mac_bundles(tmp_path):
    home = tmp_path / "jdk-25.jdk" / "Contents" / "Home"
    (home / "bin").mkdir(parents=True)
    (home / "bin" / "java").write_text("")

    assert await find_java_home(tmp_path, "java") == home
    assert await find_java_home(tmp_path / "jdk-25.jdk" / "Contents" / "Home" / "bin", "java") is None
