"""Tests for the downloader credential lifecycle."""

import json
import stat
from unittest.mock import AsyncMock, Mock

import pytest

from hytale_manager.config import DownloaderConfig
from hytale_manager.credential_store import CredentialStore
from hytale_manager.credential_store_helpers import CredentialsFile, OAuthClient, token_payload_to_credentials
from hytale_manager.exceptions import AuthorizationError, ManagerError
from hytale_manager.models import Credentials

NOW = 1_700_000_000.0


def _store(tmp_path, *, oauth=None, device_flow=None, config=None):
    lines = []
    credentials_file = CredentialsFile(tmp_path / "creds.json", lines.append)
    oauth = oauth or Mock(spec=OAuthClient)
    device_flow = device_flow or Mock(run=AsyncMock(return_value=Credentials("device-token", "device-refresh", NOW + 3600, "release")))
    store = CredentialStore(config or DownloaderConfig(), credentials_file, oauth, device_flow, lines.append, clock=lambda: NOW)
    return store, credentials_file, oauth, device_flow, lines


def test_token_payload_to_credentials_defaults():
    credentials = token_payload_to_credentials({"access_token": " abc ", "expires_in": 5}, "old-refresh", "release", now=lambda: NOW)

    assert credentials == Credentials("abc", "old-refresh", NOW + 60, "release")


@pytest.mark.asyncio
async def test_credentials_file_round_trip_with_owner_only_mode(tmp_path):
    credentials_file = CredentialsFile(tmp_path / "nested" / "creds.json", Mock())
    credentials = Credentials("a", "r", NOW, "release")

    await credentials_file.write(credentials)

    assert await credentials_file.read() == credentials
    assert stat.S_IMODE((tmp_path / "nested" / "creds.json").stat().st_mode) == 0o600


@pytest.mark.asyncio
async def test_malformed_credentials_are_ignored(tmp_path):
    report = Mock()
    path = tmp_path / "creds.json"
    path.write_text(json.dumps({"access_token": "a", "expires_at": "soon"}))

    assert await CredentialsFile(path, report).read() is None
    report.assert_called_once_with("Stored downloader credentials are malformed; re-authentication required.")


@pytest.mark.asyncio
async def test_fresh_stored_credentials_are_reused(tmp_path):
    store, credentials_file, oauth, device_flow, _ = _store(tmp_path)
    await credentials_file.write(Credentials("stored", "refresh", NOW + 3600, "release"))

    credentials = await store.get_active()

    assert credentials.access_token == "stored"
    device_flow.run.assert_not_called()


@pytest.mark.asyncio
async def test_expiring_credentials_are_refreshed(tmp_path):
    oauth = Mock(spec=OAuthClient)
    oauth.request_token = AsyncMock(return_value={"access_token": "new", "expires_in": 7200})
    store, credentials_file, _, device_flow, lines = _store(tmp_path, oauth=oauth)
    await credentials_file.write(Credentials("stale", "refresh-1", NOW + 30, "release"))

    credentials = await store.get_active()

    assert credentials == Credentials("new", "refresh-1", NOW + 7200, "release")
    oauth.request_token.assert_awaited_once_with({"grant_type": "refresh_token", "refresh_token": "refresh-1"})
    assert (await credentials_file.read()).access_token == "new"
    assert "Downloader credentials refreshed." in lines
    device_flow.run.assert_not_called()


@pytest.mark.asyncio
async def test_refused_refresh_falls_back_to_device_flow(tmp_path):
    oauth = Mock(spec=OAuthClient)
    oauth.request_token = AsyncMock(return_value={"error": "invalid_grant"})
    store, credentials_file, _, device_flow, lines = _store(tmp_path, oauth=oauth)
    await credentials_file.write(Credentials("stale", "refresh-1", NOW - 10, "release"))

    credentials = await store.get_active()

    assert credentials.access_token == "device-token"
    assert "Credential refresh failed: invalid_grant" in lines


@pytest.mark.asyncio
async def test_environment_mismatch_reauthenticates(tmp_path):
    store, credentials_file, _, device_flow, lines = _store(tmp_path)
    await credentials_file.write(Credentials("stored", "refresh", NOW + 3600, "staging"))

    await store.get_active()

    device_flow.run.assert_awaited_once()
    assert any("environment mismatch" in line for line in lines)


@pytest.mark.asyncio
async def test_rejected_token_reauthenticates_once_and_retries(tmp_path):
    store, credentials_file, _, device_flow, lines = _store(tmp_path)
    await credentials_file.write(Credentials("stored", "refresh", NOW + 3600, "release"))
    seen = []

    async def operation(token):
        seen.append(token)
        if token == "stored":
            raise AuthorizationError("rejected", status=403)
        return "ok"

    assert await store.with_downloader_token(operation) == "ok"
    assert seen == ["stored", "device-token"]
    assert "Stored downloader token was rejected; re-authentication is required." in lines


@pytest.mark.asyncio
async def test_non_authorization_errors_propagate(tmp_path):
    store, credentials_file, _, device_flow, _ = _store(tmp_path)
    await credentials_file.write(Credentials("stored", "refresh", NOW + 3600, "release"))

    async def operation(token):
        raise ManagerError("upstream broke", status=502)

    with pytest.raises(ManagerError):
        await store.with_downloader_token(operation)
    device_flow.run.assert_not_called()


@pytest.mark.asyncio
async def test_usable_access_token_never_starts_device_flow(tmp_path):
    store, credentials_file, _, device_flow, _ = _store(tmp_path)

    assert await store.usable_access_token() is None

    await credentials_file.write(Credentials("stored", "", NOW - 1, "release"))
    assert await store.usable_access_token() is None

    await credentials_file.write(Credentials("stored", "", NOW + 3600, "release"))
    assert await store.usable_access_token() == "stored"
    device_flow.run.assert_not_called()
