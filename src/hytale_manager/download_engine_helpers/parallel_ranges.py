"""Parallel byte-range download into part files merged in offset order."""

from __future__ import annotations

import asyncio
import logging
import math
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Sequence

import aiofiles
import aiofiles.os
import aiohttp

from ..exceptions import ManagerError, RequestTimeoutError, UpstreamError
from .progress import ProgressReporter
from .single_stream import stream_body_to_file

logger = logging.getLogger(__name__)

MIN_PART_BYTES = 4 * 1024 * 1024
_MERGE_CHUNK_BYTES = 1024 * 1024


@dataclass(frozen=True)
class RangePart:
    index: int
    start: int
    end: int
    path: Path


def worker_count_for(total_bytes: int, configured_concurrency: int) -> int:
    recommended = max(1, total_bytes // MIN_PART_BYTES)
    return max(2, min(configured_concurrency, recommended))


def plan_range_parts(total_bytes: int, worker_count: int, part_dir: Path) -> List[RangePart]:
    """Split ``[0, total_bytes)`` into contiguous inclusive ranges of near-equal size."""
    part_size = math.ceil(total_bytes / worker_count)
    parts = []
    for index in range(worker_count):
        start = index * part_size
        if start >= total_bytes:
            break
        end = min(total_bytes - 1, start + part_size - 1)
        parts.append(RangePart(index=index, start=start, end=end, path=part_dir / f"{index}.part"))
    return parts


async def merge_part_files(part_paths: Sequence[Path], destination: Path) -> None:
    try:
        async with aiofiles.open(destination, "wb") as writer:
            for part_path in part_paths:
                async with aiofiles.open(part_path, "rb") as reader:
                    while True:
                        chunk = await reader.read(_MERGE_CHUNK_BYTES)
                        if not chunk:
                            break
                        await writer.write(chunk)
    except BaseException:
        if await aiofiles.os.path.exists(destination):
            await aiofiles.os.remove(destination)
        raise


async def _download_part(
    session: aiohttp.ClientSession, url: str, part: RangePart, timeout_seconds: float, on_chunk: Callable[[int], None]
) -> None:
    try:
        async with session.get(
            url,
            headers={"Range": f"bytes={part.start}-{part.end}"},
            timeout=aiohttp.ClientTimeout(total=timeout_seconds),
        ) as response:
            if response.status != 206:
                raise ManagerError(f"Range download failed with status {response.status}.", status=response.status)
            await stream_body_to_file(response, part.path, on_chunk)
    except asyncio.TimeoutError as exc:
        raise RequestTimeoutError(f"Request timed out after {round(timeout_seconds)} seconds: {url}", url=url) from exc
    except aiohttp.ClientError as exc:
        raise UpstreamError(f"Range download failed: {exc}", url=url) from exc


async def download_parallel_ranges(
    session: aiohttp.ClientSession,
    url: str,
    destination: Path,
    *,
    total_bytes: int,
    configured_concurrency: int,
    timeout_seconds: float,
    progress_interval_seconds: float,
    report: Callable[[str], object],
) -> None:
    """Fetch every range concurrently; the first failing part cancels the rest and propagates."""
    worker_count = worker_count_for(total_bytes, configured_concurrency)
    report(f"Starting parallel download with {worker_count} workers...")

    part_dir = destination.with_name(f"{destination.name}.parts-{uuid.uuid4()}")
    await aiofiles.os.makedirs(part_dir, exist_ok=True)
    parts = plan_range_parts(total_bytes, worker_count, part_dir)
    progress = ProgressReporter(report, total_bytes=total_bytes, interval_seconds=progress_interval_seconds)

    try:
        tasks = [asyncio.ensure_future(_download_part(session, url, part, timeout_seconds, progress.advance)) for part in parts]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        ordered = sorted(parts, key=lambda part: part.start)
        await merge_part_files([part.path for part in ordered], destination)
        progress.maybe_report(force=True)
    finally:
        await asyncio.to_thread(shutil.rmtree, part_dir, True)
