"""Latest-release lookup against the Adoptium v3 assets API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..config import JavaRuntimeConfig
from ..exceptions import ManagerError, NotFoundError
from ..http_session import HttpSessionManager
from .platform_resolver import AdoptiumPlatform


@dataclass(frozen=True)
class AdoptiumRelease:
    release_name: str
    package_name: str
    download_url: str
    checksum: Optional[str]


def _package_of(asset: Any) -> Optional[dict]:
    if not isinstance(asset, dict):
        return None
    binary = asset.get("binary")
    package = binary.get("package") if isinstance(binary, dict) else None
    if isinstance(package, dict) and isinstance(package.get("name"), str) and isinstance(package.get("link"), str):
        return package
    return None


class AdoptiumClient:
    def __init__(self, http: HttpSessionManager, config: JavaRuntimeConfig, *, api_timeout_seconds: float) -> None:
        self._http = http
        self._config = config
        self._api_timeout_seconds = api_timeout_seconds

    async def fetch_latest_release(self, target: AdoptiumPlatform) -> AdoptiumRelease:
        feature = self._config.feature_version
        response = await self._http.request(
            "GET",
            f"https://{self._config.adoptium_api_host}/v3/assets/latest/{feature}/hotspot",
            timeout_seconds=self._api_timeout_seconds,
            headers={"Accept": "application/json"},
            params={"architecture": target.arch, "os": target.os, "image_type": "jdk", "vendor": "eclipse"},
        )
        if not response.ok:
            raise ManagerError(f"Adoptium API request failed: HTTP {response.status}", status=response.status)

        assets = response.json_body if isinstance(response.json_body, list) else []
        for asset in assets:
            package = _package_of(asset)
            if package is None:
                continue
            release_name = str(asset.get("release_name") or "").strip() or f"jdk-{feature}"
            checksum = package.get("checksum")
            return AdoptiumRelease(
                release_name=release_name,
                package_name=package["name"],
                download_url=package["link"],
                checksum=checksum if isinstance(checksum, str) else None,
            )

        raise NotFoundError(f"No Adoptium JDK package found for {target.os}/{target.arch} and feature version {feature}.")
