"""Whole-file streaming download."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable

import aiofiles
import aiofiles.os
import aiohttp

from ..exceptions import ManagerError, RequestTimeoutError, UpstreamError
from .progress import ProgressReporter

_CHUNK_BYTES = 256 * 1024


async def stream_body_to_file(response: aiohttp.ClientResponse, path: Path, on_chunk: Callable[[int], None]) -> None:
    """Write the response body to ``path``; the partial file is removed on failure."""
    try:
        async with aiofiles.open(path, "wb") as handle:
            async for chunk in response.content.iter_chunked(_CHUNK_BYTES):
                await handle.write(chunk)
                on_chunk(len(chunk))
    except BaseException:
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)
        raise


async def download_single_stream(
    session: aiohttp.ClientSession,
    url: str,
    destination: Path,
    *,
    timeout_seconds: float,
    progress_interval_seconds: float,
    report: Callable[[str], object],
) -> None:
    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout_seconds)) as response:
            if response.status < 200 or response.status >= 300:
                raise ManagerError(f"Download request failed: {response.status} {response.reason or ''}".rstrip(), status=response.status)
            progress = ProgressReporter(report, total_bytes=response.content_length, interval_seconds=progress_interval_seconds)
            await stream_body_to_file(response, destination, progress.advance)
            progress.maybe_report(force=True)
    except asyncio.TimeoutError as exc:
        raise RequestTimeoutError(f"Request timed out after {round(timeout_seconds)} seconds: {url}", url=url) from exc
    except aiohttp.ClientError as exc:
        raise UpstreamError(f"Download request failed: {exc}", url=url) from exc
