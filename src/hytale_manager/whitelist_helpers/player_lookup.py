"""Best-effort username/UUID resolution through the public player directory."""

from __future__ import annotations

import logging
from typing import Optional, Tuple
from urllib.parse import quote

from ..exceptions import ManagerError
from ..http_session import HttpSessionManager
from .player_identity import normalize_username, normalize_uuid

logger = logging.getLogger(__name__)

PLAYER_DIRECTORY_URL = "https://playerdb.co/api/player/hytale/{identifier}"


class PlayerLookupClient:
    def __init__(self, http: HttpSessionManager, *, api_timeout_seconds: float) -> None:
        self._http = http
        self.timeout_seconds = max(1.0, min(api_timeout_seconds, 2.5))

    async def lookup(self, identifier: str) -> Optional[Tuple[str, str]]:
        """``(uuid, username)`` for a name or UUID, or ``None`` on any failure."""
        url = PLAYER_DIRECTORY_URL.format(identifier=quote(identifier, safe=""))
        try:
            response = await self._http.request(
                "GET", url, timeout_seconds=self.timeout_seconds, headers={"Accept": "application/json"}
            )
        except ManagerError as exc:
            logger.debug("Player lookup for %s failed: %s", identifier, exc.message)
            return None
        if not response.ok or not isinstance(response.json_body, dict):
            return None

        data = response.json_body.get("data")
        player = data.get("player") if isinstance(data, dict) else None
        if not isinstance(player, dict):
            return None
        uuid = normalize_uuid(player.get("id"))
        username = normalize_username(player.get("username"))
        if not uuid or not username:
            return None
        return uuid, username


__all__ = ["PLAYER_DIRECTORY_URL", "PlayerLookupClient"]
