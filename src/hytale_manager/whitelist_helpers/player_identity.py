"""UUID and username normalisation plus username discovery in player profiles."""

from __future__ import annotations

import re
from typing import Any, Optional, Sequence

_UUID_COMPACT = re.compile(r"^[0-9a-f]{32}$")
_UUID_DASHED = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
_USERNAME = re.compile(r"^[a-zA-Z0-9_]{2,32}$")

_PROFILE_NAME_KEYS = ("Username", "username", "PlayerName", "playerName", "DisplayName", "displayName", "Name", "name")
_PROFILE_NESTED_PATHS = (
    ("Nameplate", "Text"),
    ("Nameplate", "text"),
    ("Nameplate", "Name"),
    ("Nameplate", "name"),
    ("DisplayName", "Text"),
    ("DisplayName", "text"),
    ("DisplayName", "Name"),
    ("DisplayName", "name"),
)
_NAME_LIKE_KEYS = frozenset({"username", "playername", "displayname", "nameplate", "name"})
_MAX_PROFILE_DEPTH = 5


def normalize_uuid(value: Any) -> Optional[str]:
    """Lower-case dashed form of a 32-hex or dashed UUID, else ``None``."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip().lower()
    if _UUID_COMPACT.match(trimmed):
        return f"{trimmed[:8]}-{trimmed[8:12]}-{trimmed[12:16]}-{trimmed[16:20]}-{trimmed[20:]}"
    if _UUID_DASHED.match(trimmed):
        return trimmed
    return None


def normalize_username(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed or normalize_uuid(trimmed) is not None:
        return None
    return trimmed if _USERNAME.match(trimmed) else None


def _nested(record: Any, path: Sequence[str]) -> Any:
    current = record
    for segment in path:
        if not isinstance(current, dict):
            return None
        current = current.get(segment)
    return current


def _search(payload: Any, depth: int) -> Optional[str]:
    if depth > _MAX_PROFILE_DEPTH or payload is None:
        return None
    if isinstance(payload, str):
        return normalize_username(payload)
    if isinstance(payload, list):
        for value in payload:
            found = _search(value, depth + 1)
            if found:
                return found
        return None
    if isinstance(payload, dict):
        for key, value in payload.items():
            if key.lower() in _NAME_LIKE_KEYS:
                found = _search(value, depth + 1)
                if found:
                    return found
    return None


def username_from_profile(payload: Any) -> Optional[str]:
    """Best guess at the player name stored in a ``universe/players/<uuid>.json`` profile."""
    if not isinstance(payload, dict):
        return None
    candidates = [payload.get(key) for key in _PROFILE_NAME_KEYS]
    candidates.extend(_nested(payload, path) for path in _PROFILE_NESTED_PATHS)
    for candidate in candidates:
        username = normalize_username(candidate)
        if username:
            return username
    return _search(payload, 0)


__all__ = ["normalize_username", "normalize_uuid", "username_from_profile"]
