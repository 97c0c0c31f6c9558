"""Downloader OAuth credential lifecycle.

Stored credentials are reused while valid, refreshed when close to expiry and
replaced through a device-authorization flow otherwise. Operations wrapped by
``with_downloader_token`` are retried once after re-authenticating when the
upstream rejects the token with 401 or 403.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from .config import DownloaderConfig
from .credential_store_helpers import CredentialsFile, DeviceAuthorizationFlow, OAuthClient, token_payload_to_credentials
from .exceptions import ManagerError, is_authorization_status
from .models import Credentials

logger = logging.getLogger(__name__)

T = TypeVar("T")

EXPIRY_SKEW_SECONDS = 60


class CredentialStore:
    def __init__(
        self,
        config: DownloaderConfig,
        credentials_file: CredentialsFile,
        oauth: OAuthClient,
        device_flow: DeviceAuthorizationFlow,
        report: Callable[[str], object],
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._file = credentials_file
        self._oauth = oauth
        self._device_flow = device_flow
        self._report = report
        self._clock = clock

    def _is_fresh(self, credentials: Credentials) -> bool:
        return credentials.expires_at > self._clock() + EXPIRY_SKEW_SECONDS and bool(credentials.access_token.strip())

    async def refresh(self, refresh_token: str) -> Optional[Credentials]:
        """Exchange ``refresh_token``; returns ``None`` when the token endpoint refuses."""
        self._report("Refreshing downloader credentials...")
        payload = await self._oauth.request_token({"grant_type": "refresh_token", "refresh_token": refresh_token})
        if not payload.get("access_token"):
            details = payload.get("error_description") or payload.get("error") or "unknown error"
            self._report(f"Credential refresh failed: {details}")
            return None

        credentials = token_payload_to_credentials(payload, refresh_token, self._config.environment, now=self._clock)
        await self._file.write(credentials)
        self._report("Downloader credentials refreshed.")
        return credentials

    async def get_active(self) -> Credentials:
        stored = await self._file.read()

        if stored is not None and stored.environment == self._config.environment:
            if self._is_fresh(stored):
                return stored
            if stored.refresh_token.strip():
                refreshed = await self.refresh(stored.refresh_token)
                if refreshed is not None:
                    return refreshed
        elif stored is not None:
            self._report(
                f"Stored credentials environment mismatch ({stored.environment} != {self._config.environment}); re-authenticating."
            )

        return await self._device_flow.run()

    async def with_downloader_token(self, operation: Callable[[str], Awaitable[T]]) -> T:
        """Run ``operation(access_token)``; on 401/403 re-authenticate once and retry."""
        credentials = await self.get_active()
        try:
            return await operation(credentials.access_token)
        except ManagerError as exc:
            if not is_authorization_status(exc):
                raise
            logger.info("Downloader token rejected with status %s", exc.status)

        self._report("Stored downloader token was rejected; re-authentication is required.")
        credentials = await self._device_flow.run()
        return await operation(credentials.access_token)

    async def usable_access_token(self) -> Optional[str]:
        """Access token from stored credentials without ever starting a device flow.

        Returns ``None`` when nothing usable is stored or the refresh fails.
        """
        stored = await self._file.read()
        if stored is None or stored.environment != self._config.environment or not stored.access_token.strip():
            return None
        if stored.expires_at > self._clock() + EXPIRY_SKEW_SECONDS:
            return stored.access_token
        if not stored.refresh_token.strip():
            return None
        try:
            refreshed = await self.refresh(stored.refresh_token)
        except ManagerError as exc:
            logger.debug("Non-interactive credential refresh failed: %s", exc.message)
            return None
        return refreshed.access_token if refreshed else None


__all__ = ["CredentialStore", "EXPIRY_SKEW_SECONDS"]
