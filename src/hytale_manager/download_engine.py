"""Artifact downloads with caching, checksum enforcement and parallel ranges.

The engine first tries a cached copy of the logical artifact, then checks
range support. Large range-capable downloads are split across workers; any
worker failure discards the partial work and the whole file is fetched again
over a single stream.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

import aiofiles.os

from .exceptions import ManagerError
from .download_engine_helpers import (
    DownloadCache,
    download_parallel_ranges,
    download_single_stream,
    format_bytes,
    check_range_support,
    validate_sha256,
)
from .http_session import HttpSessionManager, ensure_http_url

logger = logging.getLogger(__name__)

MIN_PARALLEL_BYTES = 8 * 1024 * 1024


class DownloadEngine:
    """Downloads URLs to local files, reporting progress as terminal lines."""

    def __init__(
        self,
        http: HttpSessionManager,
        cache: DownloadCache,
        report: Callable[[str], object],
        *,
        concurrency: int = 6,
        progress_interval_seconds: float = 2.0,
    ) -> None:
        self._http = http
        self._cache = cache
        self._report = report
        self.concurrency = max(1, min(16, int(concurrency) or 1))
        self.progress_interval_seconds = max(0.25, progress_interval_seconds)

    async def _try_cached(self, cache_key: str, destination: Path, expected_sha256: Optional[str]) -> bool:
        if not await self._cache.exists(cache_key):
            return False

        if expected_sha256:
            try:
                await validate_sha256(self._cache.path_for(cache_key), expected_sha256)
            except ManagerError as exc:
                logger.debug("Cached artifact %s failed validation: %s", cache_key, exc.message)
                self._report("Cached download checksum mismatch; re-downloading artifact.")
                await self._cache.discard(cache_key)
                return False

        size = await self._cache.restore(cache_key, destination)
        self._report(f"Using cached download ({format_bytes(size)}).")
        return True

    async def download_file_with_progress(
        self,
        url: str,
        destination: Path,
        timeout_seconds: float,
        *,
        cache_key: Optional[str] = None,
        expected_sha256: Optional[str] = None,
    ) -> None:
        """Fetch ``url`` into ``destination``.

        ``expected_sha256`` only gates reuse of a cached copy; callers validate
        the fresh download themselves so the failure names the artifact.
        """
        ensure_http_url(url)
        if cache_key and await self._try_cached(cache_key, destination, expected_sha256):
            return

        if await aiofiles.os.path.exists(destination):
            await aiofiles.os.remove(destination)

        session = await self._http.get_session()
        total_bytes = await check_range_support(session, url, timeout_seconds) if self.concurrency > 1 else None

        if total_bytes is not None and total_bytes >= MIN_PARALLEL_BYTES:
            try:
                await download_parallel_ranges(
                    session,
                    url,
                    destination,
                    total_bytes=total_bytes,
                    configured_concurrency=self.concurrency,
                    timeout_seconds=timeout_seconds,
                    progress_interval_seconds=self.progress_interval_seconds,
                    report=self._report,
                )
            except (ManagerError, OSError) as exc:
                logger.warning("Parallel download of %s failed: %s", url, exc)
                self._report("Parallel download failed, retrying with single stream...")
                if await aiofiles.os.path.exists(destination):
                    await aiofiles.os.remove(destination)
                await self._single_stream(session, url, destination, timeout_seconds)
        else:
            await self._single_stream(session, url, destination, timeout_seconds)

        if cache_key:
            await self._cache.save(destination, cache_key)

    async def _single_stream(self, session, url: str, destination: Path, timeout_seconds: float) -> None:
        await download_single_stream(
            session,
            url,
            destination,
            timeout_seconds=timeout_seconds,
            progress_interval_seconds=self.progress_interval_seconds,
            report=self._report,
        )


__all__ = ["DownloadEngine", "MIN_PARALLEL_BYTES"]
