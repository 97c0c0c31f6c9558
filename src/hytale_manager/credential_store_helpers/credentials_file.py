"""JSON persistence of downloader credentials with owner-only permissions."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Callable, Optional

import aiofiles
import aiofiles.os

from ..models import Credentials

logger = logging.getLogger(__name__)

_CREDENTIALS_FILE_MODE = 0o600


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class CredentialsFile:
    def __init__(self, path: Path, report: Callable[[str], object]) -> None:
        self.path = path
        self._report = report

    async def read(self) -> Optional[Credentials]:
        """Stored credentials, or ``None`` when missing, unreadable or malformed."""
        if not await aiofiles.os.path.exists(self.path):
            return None

        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as handle:
                parsed = json.loads(await handle.read())
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read downloader credentials from %s: %s", self.path, exc)
            self._report("Stored downloader credentials could not be read; re-authentication required.")
            return None

        if (
            not isinstance(parsed, dict)
            or not isinstance(parsed.get("access_token"), str)
            or not isinstance(parsed.get("refresh_token"), str)
            or not _is_number(parsed.get("expires_at"))
            or not isinstance(parsed.get("environment"), str)
        ):
            self._report("Stored downloader credentials are malformed; re-authentication required.")
            return None

        return Credentials(
            access_token=parsed["access_token"],
            refresh_token=parsed["refresh_token"],
            expires_at=float(parsed["expires_at"]),
            environment=parsed["environment"],
        )

    async def write(self, credentials: Credentials) -> None:
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _CREDENTIALS_FILE_MODE)
        os.close(fd)
        os.chmod(self.path, _CREDENTIALS_FILE_MODE)
        async with aiofiles.open(self.path, "w", encoding="utf-8") as handle:
            await handle.write(json.dumps(credentials.to_dict(), indent=2))
