"""Helper modules for the downloader credential store."""

from .browser_launcher import try_open_external_url
from .credentials_file import CredentialsFile
from .device_flow import DeviceAuthorizationFlow
from .oauth_client import OAuthClient, token_payload_to_credentials

__all__ = [
    "CredentialsFile",
    "DeviceAuthorizationFlow",
    "OAuthClient",
    "token_payload_to_credentials",
    "try_open_external_url",
]
