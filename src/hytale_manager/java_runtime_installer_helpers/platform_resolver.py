"""Map the host platform onto Adoptium's os/architecture names."""

from __future__ import annotations

import platform
import sys
from dataclasses import dataclass
from typing import Optional

from ..exceptions import ValidationError

_OS_MAP = {"linux": "linux", "darwin": "mac", "win32": "windows"}
_ARCH_MAP = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


@dataclass(frozen=True)
class AdoptiumPlatform:
    os: str
    arch: str


def resolve_adoptium_platform(system: Optional[str] = None, machine: Optional[str] = None) -> AdoptiumPlatform:
    system = system if system is not None else sys.platform
    machine = machine if machine is not None else platform.machine()

    os_name = _OS_MAP.get(system)
    if os_name is None:
        raise ValidationError(f"Unsupported platform for Adoptium download: {system}")
    arch = _ARCH_MAP.get(machine.lower())
    if arch is None:
        raise ValidationError(f"Unsupported architecture for Adoptium download: {machine}")
    return AdoptiumPlatform(os=os_name, arch=arch)
