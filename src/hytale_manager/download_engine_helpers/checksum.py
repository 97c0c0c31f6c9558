"""SHA-256 validation of downloaded artifacts."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

import aiofiles

from ..exceptions import ChecksumMismatchError, ValidationError

_SHA256_PATTERN = re.compile(r"^[a-f0-9]{64}$")
_READ_CHUNK_BYTES = 1024 * 1024


def normalize_expected_sha256(expected: str) -> str:
    normalized = expected.strip().lower()
    if not _SHA256_PATTERN.match(normalized):
        raise ValidationError("Manifest checksum is not a valid SHA256 hex string.")
    return normalized


async def compute_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    async with aiofiles.open(path, "rb") as handle:
        while True:
            chunk = await handle.read(_READ_CHUNK_BYTES)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest().lower()


async def validate_sha256(path: Path, expected: str) -> None:
    """Stream ``path`` through SHA-256 and compare with ``expected``.

    Raises:
        ValidationError: ``expected`` is not a 64-character hex digest.
        ChecksumMismatchError: the digests differ.
    """
    normalized = normalize_expected_sha256(expected)
    actual = await compute_sha256(path)
    if actual != normalized:
        raise ChecksumMismatchError(path.name, expected=normalized, actual=actual)
