"""Helper modules for the managed Java runtime installer."""

from .adoptium_client import AdoptiumClient, AdoptiumRelease
from .java_home_locator import find_java_home
from .platform_resolver import AdoptiumPlatform, resolve_adoptium_platform

__all__ = ["AdoptiumClient", "AdoptiumPlatform", "AdoptiumRelease", "find_java_home", "resolve_adoptium_platform"]
