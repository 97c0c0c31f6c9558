"""Short-lived in-memory cache of the latest manifest per patchline."""

from __future__ import annotations

import time
from typing import Callable, Optional, Tuple

from ..models import VersionManifest

MANIFEST_CACHE_TTL_SECONDS = 60.0


class ManifestCache:
    def __init__(self, *, ttl_seconds: float = MANIFEST_CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entry: Optional[Tuple[str, VersionManifest, float]] = None

    def get(self, patchline: str) -> Optional[VersionManifest]:
        if self._entry is None:
            return None
        cached_patchline, manifest, fetched_at = self._entry
        if cached_patchline != patchline or self._clock() - fetched_at >= self._ttl:
            return None
        return manifest

    def put(self, patchline: str, manifest: VersionManifest) -> None:
        self._entry = (patchline, manifest, self._clock())
