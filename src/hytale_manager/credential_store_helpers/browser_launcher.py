"""Best-effort launch of the host's default browser."""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from typing import List

logger = logging.getLogger(__name__)


def _browser_command(url: str) -> List[str]:
    if sys.platform == "darwin":
        return ["open", url]
    if sys.platform == "win32":
        return ["cmd", "/c", "start", "", url]
    return ["xdg-open", url]


def try_open_external_url(url: str) -> bool:
    command = _browser_command(url)
    if command[0] != "cmd" and shutil.which(command[0]) is None:
        return False
    try:
        subprocess.Popen(command, stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except OSError as exc:
        logger.debug("Failed to launch browser with %s: %s", command[0], exc)
        return False
    return True
