"""Whitelist administration over the server's ``whitelist.json``.

The file holds ``{"enabled": bool, "list": [uuid, ...]}``. Listing decorates
each UUID with a player name taken from local player profiles, then the name
cache, then (for a few entries per call) the public player directory. Every
mutation broadcasts ``whitelist.state``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import aiofiles
import aiofiles.os

from .broadcast import SinkRelay
from .exceptions import ManagerError, NotFoundError, ValidationError
from .models import WhitelistEntry, WhitelistState
from .whitelist_helpers import (
    CachedName,
    PlayerLookupClient,
    PlayerNameCache,
    normalize_username,
    normalize_uuid,
    username_from_profile,
    utc_now,
)

logger = logging.getLogger(__name__)

WHITELIST_FILE = "whitelist.json"
REMOTE_LOOKUPS_PER_LIST = 3

LocalProfiles = Dict[str, Tuple[str, str]]


def _read_local_profiles(players_dir: Path) -> LocalProfiles:
    """Map UUID to ``(username, last seen)`` from ``universe/players/*.json``."""
    profiles: LocalProfiles = {}
    if not players_dir.is_dir():
        return profiles
    for path in players_dir.iterdir():
        if not path.is_file() or not path.name.lower().endswith(".json"):
            continue
        uuid = normalize_uuid(path.name[: -len(".json")])
        if not uuid:
            continue
        try:
            username = username_from_profile(json.loads(path.read_text(encoding="utf-8")))
            modified = path.stat().st_mtime
        except (OSError, ValueError):
            continue
        if username:
            seen = datetime.fromtimestamp(modified, tz=timezone.utc).isoformat().replace("+00:00", "Z")
            profiles[uuid] = (username, seen)
    return profiles


class WhitelistManager:
    def __init__(
        self,
        server_dir: Path,
        name_cache: PlayerNameCache,
        lookup: PlayerLookupClient,
        sink: SinkRelay,
        report: Callable[[str], object],
    ) -> None:
        self.path = server_dir / WHITELIST_FILE
        self.players_dir = server_dir / "universe" / "players"
        self._name_cache = name_cache
        self._lookup = lookup
        self._sink = sink
        self._report = report
        self._lock = asyncio.Lock()

    async def _read(self) -> Tuple[bool, List[str]]:
        if not await aiofiles.os.path.isfile(self.path):
            await self._write(False, [])
            return False, []
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as handle:
                data = json.loads(await handle.read())
        except ValueError as exc:
            raise ManagerError("whitelist.json is not valid JSON.", status=500) from exc

        record = data if isinstance(data, dict) else {}
        enabled = record.get("enabled") if isinstance(record.get("enabled"), bool) else False
        uuids: List[str] = []
        for item in record.get("list") if isinstance(record.get("list"), list) else []:
            uuid = normalize_uuid(item)
            if uuid and uuid not in uuids:
                uuids.append(uuid)
        return enabled, uuids

    async def _write(self, enabled: bool, uuids: List[str]) -> None:
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        async with aiofiles.open(self.path, "w", encoding="utf-8") as handle:
            await handle.write(json.dumps({"enabled": enabled, "list": uuids}))

    async def list_whitelist(self) -> WhitelistState:
        enabled, uuids = await self._read()
        profiles = await asyncio.to_thread(_read_local_profiles, self.players_dir)
        cache = await self._name_cache.load()
        cache_changed = False
        remote_budget = REMOTE_LOOKUPS_PER_LIST

        entries = []
        for uuid in uuids:
            local = profiles.get(uuid)
            if local is not None:
                username, seen = local
                cached = cache.get(uuid)
                if cached is None or cached.username != username:
                    cache[uuid] = CachedName(username, utc_now())
                    cache_changed = True
                entries.append(WhitelistEntry(uuid, username, seen, "local-player"))
                continue

            cached = cache.get(uuid)
            if cached is not None:
                entries.append(WhitelistEntry(uuid, cached.username, cached.updated_at, "cache"))
                continue

            if remote_budget > 0:
                remote_budget -= 1
                resolved = await self._lookup.lookup(uuid)
                if resolved is not None and resolved[0] == uuid:
                    cache[uuid] = CachedName(resolved[1], utc_now())
                    cache_changed = True
                    entries.append(WhitelistEntry(uuid, resolved[1], None, "remote"))
                    continue

            entries.append(WhitelistEntry(uuid, None, None, "unknown"))

        if cache_changed:
            logger.debug("Updating player name cache after whitelist listing")
            await self._name_cache.save(cache)
        return WhitelistState(enabled=enabled, entries=entries)

    async def _publish(self) -> WhitelistState:
        state = await self.list_whitelist()
        self._sink.emit("whitelist.state", {"whitelist": state.to_dict()})
        return state

    async def set_enabled(self, enabled: bool) -> WhitelistState:
        if not isinstance(enabled, bool):
            raise ValidationError("enabled must be a boolean.")
        async with self._lock:
            _, uuids = await self._read()
            await self._write(enabled, uuids)
        self._report(f"Whitelist {'enabled' if enabled else 'disabled'}.")
        return await self._publish()

    async def add_entry(self, value: str) -> WhitelistState:
        """Whitelist a player by UUID or username; unknown usernames are a 404."""
        text = (value or "").strip()
        if not text:
            raise ValidationError("username or UUID is required.")
        uuid, username = await self._resolve(text)

        async with self._lock:
            enabled, uuids = await self._read()
            added = uuid not in uuids
            if added:
                uuids.append(uuid)
                await self._write(enabled, uuids)
        if added:
            self._report(f"Whitelist added: {username} ({uuid})" if username else f"Whitelist added: {uuid}")
        return await self._publish()

    async def remove_entry(self, value: str) -> WhitelistState:
        uuid = normalize_uuid(value)
        if not uuid:
            raise ValidationError("uuid must be a valid UUID.")
        async with self._lock:
            enabled, uuids = await self._read()
            if uuid not in uuids:
                raise NotFoundError("Whitelist entry not found.")
            uuids.remove(uuid)
            await self._write(enabled, uuids)
        self._report(f"Whitelist removed: {uuid}")
        return await self._publish()

    async def _resolve(self, text: str) -> Tuple[str, Optional[str]]:
        uuid = normalize_uuid(text)
        if uuid:
            return uuid, None
        username = normalize_username(text)
        if not username:
            raise ValidationError("Provide a valid username or UUID.")

        lowered = username.lower()
        cache = await self._name_cache.load()
        profiles = await asyncio.to_thread(_read_local_profiles, self.players_dir)
        for profile_uuid, (profile_name, _) in profiles.items():
            if profile_name.lower() == lowered:
                cache[profile_uuid] = CachedName(profile_name, utc_now())
                await self._name_cache.save(cache)
                return profile_uuid, profile_name

        for cached_uuid, cached in cache.items():
            if cached.username.lower() == lowered:
                return cached_uuid, cached.username

        resolved = await self._lookup.lookup(username)
        if resolved is not None:
            cache[resolved[0]] = CachedName(resolved[1], utc_now())
            await self._name_cache.save(cache)
            return resolved

        raise NotFoundError(f"Could not resolve Hytale username '{username}'. Try adding the player's UUID directly.")


__all__ = ["REMOTE_LOOKUPS_PER_LIST", "WHITELIST_FILE", "WhitelistManager"]
