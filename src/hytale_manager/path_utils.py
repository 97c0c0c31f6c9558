"""Filename sanitising and workspace naming helpers."""

from __future__ import annotations

import os
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_filename(value: str) -> str:
    """Replace characters outside ``[A-Za-z0-9._-]`` and drop any directory part."""
    return os.path.basename(_UNSAFE_FILENAME_CHARS.sub("_", value))


def timestamp_id(moment: Optional[datetime] = None) -> str:
    """Compact UTC stamp such as ``20260101T120000Z``."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def workspace_path(parent: Path, prefix: str) -> Path:
    return parent / f"{prefix}-{timestamp_id()}-{uuid.uuid4().hex[:8]}"


__all__ = ["sanitize_filename", "timestamp_id", "workspace_path"]
