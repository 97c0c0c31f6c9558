"""OAuth endpoints used by the downloader device flow."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict

from ..config import DownloaderConfig
from ..exceptions import AuthorizationError, HostEnvironmentError, ManagerError
from ..http_session import HttpSessionManager
from ..models import Credentials

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"
_FORM_HEADERS = {"Accept": "application/json", "Content-Type": "application/x-www-form-urlencoded"}


def token_payload_to_credentials(
    payload: Dict[str, Any], fallback_refresh_token: str, environment: str, *, now: Callable[[], float] = time.time
) -> Credentials:
    access_token = str(payload.get("access_token") or "").strip()
    if not access_token:
        raise HostEnvironmentError("OAuth token response did not include access_token.")

    refresh_token = str(payload.get("refresh_token") or "").strip() or fallback_refresh_token
    try:
        expires_in = max(60, int(payload.get("expires_in", 3600)))
    except (TypeError, ValueError):
        expires_in = 3600
    return Credentials(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=float(int(now()) + expires_in),
        environment=environment,
    )


class OAuthClient:
    """Form-encoded calls to the device-authorization and token endpoints."""

    def __init__(self, http: HttpSessionManager, config: DownloaderConfig) -> None:
        self._http = http
        self._config = config

    @property
    def _base_url(self) -> str:
        return f"https://{self._config.oauth_host}/oauth2"

    async def request_device_code(self) -> Dict[str, Any]:
        response = await self._http.request(
            "POST",
            f"{self._base_url}/device/auth",
            timeout_seconds=self._config.api_timeout_seconds,
            headers=_FORM_HEADERS,
            form={"client_id": self._config.client_id, "scope": self._config.scope},
        )
        payload = response.json_body if isinstance(response.json_body, dict) else {}
        if not response.ok or payload.get("error") or not payload.get("device_code") or not payload.get("user_code"):
            details = payload.get("error_description") or payload.get("error") or f"HTTP {response.status}"
            raise AuthorizationError(f"Failed to initialize device authorization: {details}")
        return payload

    async def request_token(self, fields: Dict[str, str]) -> Dict[str, Any]:
        """POST to the token endpoint; OAuth error bodies are returned, not raised."""
        response = await self._http.request(
            "POST",
            f"{self._base_url}/token",
            timeout_seconds=self._config.api_timeout_seconds,
            headers=_FORM_HEADERS,
            form={**fields, "client_id": self._config.client_id},
        )
        payload = response.json_body
        if not isinstance(payload, dict):
            if not response.ok:
                raise ManagerError(f"Token endpoint returned HTTP {response.status}.", status=response.status)
            payload = {}
        if not response.ok and not payload.get("error"):
            raise ManagerError(f"Token request failed: HTTP {response.status}", status=response.status)
        return payload
