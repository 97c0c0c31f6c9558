"""Signed asset URLs and version manifests from the account-data API."""

from __future__ import annotations

import logging
from typing import Callable

from ..config import DownloaderConfig
from ..exceptions import HostEnvironmentError, ManagerError
from ..http_session import HttpSessionManager
from ..models import VersionManifest

logger = logging.getLogger(__name__)


class AccountDataClient:
    def __init__(self, http: HttpSessionManager, config: DownloaderConfig, report: Callable[[str], object]) -> None:
        self._http = http
        self._config = config
        self._report = report

    async def get_signed_asset_url(self, access_token: str, asset_path: str) -> str:
        """Resolve ``asset_path`` to a short-lived download URL.

        Upstream status codes are preserved so 401/403 can trigger re-authentication.
        """
        normalized = asset_path.lstrip("/")
        response = await self._http.request(
            "GET",
            f"https://{self._config.account_data_host}/game-assets/{normalized}",
            timeout_seconds=self._config.api_timeout_seconds,
            headers={"Accept": "application/json", "Authorization": f"Bearer {access_token}"},
        )
        if not response.ok:
            raise ManagerError(f"Failed to resolve signed URL for {normalized}: {response.details()}", status=response.status)

        url = response.json_body.get("url") if isinstance(response.json_body, dict) else None
        if not isinstance(url, str) or not url:
            raise HostEnvironmentError(f"Signed URL response for {normalized} is missing url.")
        return url

    async def fetch_manifest(self, access_token: str, patchline: str, *, log_to_terminal: bool) -> VersionManifest:
        manifest_path = f"version/{patchline}.json"
        if log_to_terminal:
            self._report(f"Fetching manifest: {manifest_path}")

        signed_url = await self.get_signed_asset_url(access_token, manifest_path)
        response = await self._http.request(
            "GET", signed_url, timeout_seconds=self._config.api_timeout_seconds, headers={"Accept": "application/json"}
        )
        if not response.ok:
            raise ManagerError(f"Manifest request failed: HTTP {response.status}", status=response.status)

        payload = response.json_body if isinstance(response.json_body, dict) else {}
        version, download_url, sha256 = payload.get("version"), payload.get("download_url"), payload.get("sha256")
        if not version or not download_url or not sha256:
            raise HostEnvironmentError("Malformed manifest response from account-data endpoint.")

        manifest = VersionManifest(version=str(version), download_url=str(download_url), sha256=str(sha256))
        if log_to_terminal:
            self._report(f"Resolved patchline {patchline} to version {manifest.version}")
        return manifest
