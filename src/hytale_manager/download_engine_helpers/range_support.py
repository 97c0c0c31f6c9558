"""Byte-range support detection."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)

_CONTENT_RANGE_PATTERN = re.compile(r"^bytes\s+\d+-\d+/(\d+)$", re.IGNORECASE)


def parse_content_range_total(header_value: str) -> Optional[int]:
    match = _CONTENT_RANGE_PATTERN.match(header_value.strip())
    if not match:
        return None
    total = int(match.group(1))
    return total if total > 0 else None


async def check_range_support(session: aiohttp.ClientSession, url: str, timeout_seconds: float) -> Optional[int]:
    """Return the total size when the server answers ``Range: bytes=0-0`` with a 206, else ``None``."""
    try:
        async with session.get(
            url,
            headers={"Range": "bytes=0-0"},
            timeout=aiohttp.ClientTimeout(total=timeout_seconds),
        ) as response:
            if response.status != 206:
                return None
            return parse_content_range_total(response.headers.get("Content-Range", ""))
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        logger.debug("Range request check failed for %s: %s", url, exc)
        return None
