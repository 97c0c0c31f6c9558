"""Tokenising and heap-size parsing for JVM argument strings."""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

_ARG_PATTERN = re.compile(r"\"([^\"]*)\"|'([^']*)'|([^\s]+)")
_HEAP_SIZE_PATTERN = re.compile(r"^([0-9]+)([kKmMgG]?)$")


def parse_args(raw: str) -> List[str]:
    """Split ``raw`` on whitespace, keeping single- or double-quoted runs together."""
    return [double or single or bare for double, single, bare in _ARG_PATTERN.findall(raw)]


def parse_heap_size_mb(raw_value: str) -> Optional[int]:
    """Convert ``512m``/``4g``/``1048576k`` style sizes to megabytes."""
    trimmed = raw_value.strip()
    match = _HEAP_SIZE_PATTERN.match(trimmed)
    if not match:
        return None

    amount = int(match.group(1))
    if amount <= 0:
        return None

    unit = match.group(2).lower()
    if unit == "g":
        return amount * 1024
    if unit == "k":
        return max(1, round(amount / 1024))
    return amount


def extract_heap_option_mb(args: Sequence[str], flag: str) -> Optional[int]:
    """Find ``flag`` (``-Xms`` or ``-Xmx``) either inline or as a separate token."""
    for index, token in enumerate(args):
        if token == flag:
            next_value = args[index + 1] if index + 1 < len(args) else ""
            parsed = parse_heap_size_mb(next_value)
            if parsed is not None:
                return parsed
            continue
        if token.startswith(flag):
            parsed = parse_heap_size_mb(token[len(flag) :])
            if parsed is not None:
                return parsed
    return None


def is_heap_argument(value: str) -> bool:
    return value.lower().startswith(("-xms", "-xmx"))
