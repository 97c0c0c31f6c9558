"""Helper modules for whitelist administration."""

from .name_cache import CachedName, PlayerNameCache, utc_now
from .player_identity import normalize_username, normalize_uuid, username_from_profile
from .player_lookup import PLAYER_DIRECTORY_URL, PlayerLookupClient

__all__ = [
    "CachedName",
    "PLAYER_DIRECTORY_URL",
    "PlayerLookupClient",
    "PlayerNameCache",
    "normalize_username",
    "normalize_uuid",
    "username_from_profile",
    "utc_now",
]
