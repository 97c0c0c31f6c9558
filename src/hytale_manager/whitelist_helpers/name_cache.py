"""JSON cache of resolved player names keyed by UUID."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

import aiofiles
import aiofiles.os

from .player_identity import normalize_username, normalize_uuid

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class CachedName:
    username: str
    updated_at: str


class PlayerNameCache:
    def __init__(self, path: Path) -> None:
        self.path = path

    async def load(self) -> Dict[str, CachedName]:
        """Cached names; a missing or unreadable file is an empty cache."""
        if not await aiofiles.os.path.isfile(self.path):
            return {}
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as handle:
                data = json.loads(await handle.read())
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable player name cache %s: %s", self.path, exc)
            return {}

        by_uuid = data.get("byUuid") if isinstance(data, dict) else None
        cache: Dict[str, CachedName] = {}
        for raw_uuid, raw_entry in (by_uuid or {}).items():
            entry = raw_entry if isinstance(raw_entry, dict) else {}
            uuid = normalize_uuid(raw_uuid)
            username = normalize_username(entry.get("username"))
            if not uuid or not username:
                continue
            updated_at = entry.get("updatedAt")
            cache[uuid] = CachedName(username, updated_at.strip() if isinstance(updated_at, str) and updated_at.strip() else utc_now())
        return cache

    async def save(self, cache: Dict[str, CachedName]) -> None:
        payload = {
            "byUuid": {
                uuid: {"username": entry.username, "updatedAt": entry.updated_at} for uuid, entry in sorted(cache.items())
            }
        }
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        async with aiofiles.open(self.path, "w", encoding="utf-8") as handle:
            await handle.write(json.dumps(payload, indent=2))


__all__ = ["CachedName", "PlayerNameCache", "utc_now"]
