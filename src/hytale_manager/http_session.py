"""Shared aiohttp session management and JSON request helpers."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlsplit

import aiohttp

from .exceptions import RequestTimeoutError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

USER_AGENT = "hytale-manager/1.0"


def ensure_http_url(request_url: str) -> str:
    """Ensure the provided URL uses an allowed HTTP/HTTPS scheme."""
    parsed = urlsplit(request_url)
    scheme = parsed.scheme.lower()
    if scheme not in {"http", "https"}:
        raise ValidationError(f"Unsupported URL scheme: {request_url}")
    if not parsed.netloc:
        raise ValidationError(f"URL missing network location: {request_url}")
    return request_url


@dataclass(frozen=True)
class HttpResponseData:
    """Fully-read response: status, raw text and the JSON body when it parsed."""

    status: int
    text: str
    json_body: Optional[Any]

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def details(self) -> str:
        """Best short description of an error body for user-facing messages."""
        if isinstance(self.json_body, dict):
            for key in ("error_description", "message", "error"):
                value = self.json_body.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return self.text.strip()[:500] or f"HTTP {self.status}"


class HttpSessionManager:
    """Owns one lazily created ``aiohttp.ClientSession`` for the manager."""

    def __init__(self, *, connection_timeout: float = 30.0) -> None:
        self.connection_timeout = connection_timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers={"User-Agent": USER_AGENT},
                connector=aiohttp.TCPConnector(limit=64, ttl_dns_cache=300, use_dns_cache=True),
                timeout=aiohttp.ClientTimeout(total=None, connect=self.connection_timeout),
            )
            logger.debug("HTTP session created")
        return self.session

    async def close(self) -> None:
        if self.session is None:
            return
        try:
            if not self.session.closed:
                logger.info("Closing HTTP session")
                await asyncio.wait_for(self.session.close(), timeout=5.0)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.warning("Error closing HTTP session: %s", exc)
        finally:
            self.session = None

    async def request(
        self,
        method: str,
        url: str,
        *,
        timeout_seconds: float,
        headers: Optional[Mapping[str, str]] = None,
        form: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> HttpResponseData:
        """Perform one request and read the full body within ``timeout_seconds``.

        Raises:
            RequestTimeoutError: the deadline elapsed before the body was read.
            UpstreamError: the connection failed.
        """
        ensure_http_url(url)
        session = await self.get_session()
        try:
            async with session.request(
                method,
                url,
                headers=dict(headers or {}),
                data=form,
                params=params,
                timeout=aiohttp.ClientTimeout(total=timeout_seconds),
            ) as response:
                text = await response.text()
                status = response.status
        except asyncio.TimeoutError as exc:
            raise RequestTimeoutError(f"Request timed out after {timeout_seconds:g} seconds: {url}", url=url) from exc
        except aiohttp.ClientError as exc:
            raise UpstreamError(f"Request failed for {url}: {exc}", url=url) from exc

        return HttpResponseData(status=status, text=text, json_body=_parse_json(text))


def _parse_json(text: str) -> Optional[Any]:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


__all__ = ["HttpResponseData", "HttpSessionManager", "ensure_http_url"]
