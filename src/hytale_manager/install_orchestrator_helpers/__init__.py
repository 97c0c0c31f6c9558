"""Helper modules for the server install orchestrator."""

from .account_data_client import AccountDataClient
from .install_metadata import InstallMetadataFile
from .layout_locator import ServerLayout, locate_downloaded_layout
from .manifest_cache import ManifestCache

__all__ = ["AccountDataClient", "InstallMetadataFile", "ManifestCache", "ServerLayout", "locate_downloaded_layout"]
