"""Supervisor and installer for a self-hosted Hytale dedicated server."""

from .config import ManagerConfig, load_manager_config
from .manager import HytaleManager, create_manager

__version__ = "0.1.0"

__all__ = ["HytaleManager", "ManagerConfig", "create_manager", "load_manager_config"]
