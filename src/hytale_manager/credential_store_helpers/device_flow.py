"""OAuth device-authorization polling loop."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from ..broadcast import BroadcastSink
from ..config import DownloaderConfig
from ..exceptions import AuthorizationError, HostEnvironmentError, RequestTimeoutError
from ..models import Credentials
from .credentials_file import CredentialsFile
from .oauth_client import DEVICE_CODE_GRANT, OAuthClient, token_payload_to_credentials

logger = logging.getLogger(__name__)

PENDING_LOG_INTERVAL_SECONDS = 15.0
SLOW_DOWN_INCREMENT_SECONDS = 5


class DeviceAuthorizationFlow:
    """Requests a device code, shows it to the operator and polls until a token is issued."""

    def __init__(
        self,
        oauth: OAuthClient,
        credentials_file: CredentialsFile,
        config: DownloaderConfig,
        report: Callable[[str], object],
        sink: BroadcastSink,
        *,
        open_browser: Callable[[str], bool],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._oauth = oauth
        self._credentials_file = credentials_file
        self._config = config
        self._report = report
        self._sink = sink
        self._open_browser = open_browser
        self._sleep = sleep
        self._clock = clock
        self._wall_clock = wall_clock

    def _announce(self, verification_url: str, user_code: str) -> None:
        self._report("Please visit the following URL to authenticate:")
        self._report(verification_url)
        self._report(f"Authorization code: {user_code}")

        opened_by_server = False
        if self._config.auto_open_browser:
            opened_by_server = self._open_browser(verification_url)
            if opened_by_server:
                self._report("Opened authorization URL in your default browser.")
            else:
                self._report("Could not open browser automatically. Open the URL manually.")

        self._sink.emit("auth.device", {"url": verification_url, "code": user_code, "openedByServer": opened_by_server})

    async def run(self) -> Credentials:
        """Complete a fresh device authorization and persist the resulting credentials.

        Raises:
            AuthorizationError: device-code request failed or the grant was denied.
            RequestTimeoutError: the poll deadline passed without a decision.
        """
        self._report("Requesting downloader authorization device code...")
        device = await self._oauth.request_device_code()

        verification_url = device.get("verification_uri_complete") or device.get("verification_uri")
        if not verification_url:
            raise HostEnvironmentError("Device authorization response did not include a verification URL.")
        self._announce(verification_url, str(device["user_code"]))

        expires_in = float(device.get("expires_in") or self._config.device_poll_timeout_seconds)
        deadline = self._clock() + min(expires_in, self._config.device_poll_timeout_seconds)
        interval = max(1, int(device.get("interval") or 5))
        last_pending_log = None

        while self._clock() < deadline:
            await self._sleep(interval)
            payload = await self._oauth.request_token({"grant_type": DEVICE_CODE_GRANT, "device_code": str(device["device_code"])})

            if payload.get("access_token"):
                credentials = token_payload_to_credentials(payload, "", self._config.environment, now=self._wall_clock)
                await self._credentials_file.write(credentials)
                self._report("Downloader authorization completed.")
                return credentials

            error = payload.get("error")
            if error == "authorization_pending":
                now = self._clock()
                if last_pending_log is None or now - last_pending_log >= PENDING_LOG_INTERVAL_SECONDS:
                    self._report("Waiting for authorization confirmation...")
                    last_pending_log = now
                continue
            if error == "slow_down":
                interval += SLOW_DOWN_INCREMENT_SECONDS
                continue

            details = payload.get("error_description") or error or "unknown error"
            raise AuthorizationError(f"Authorization failed: {details}")

        raise RequestTimeoutError("Authorization timed out before completion.")
