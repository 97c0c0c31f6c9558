"""Entry point: ``python -m hytale_manager``."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from .config import ConfigurationError, ManagerConfig, ensure_directories, load_manager_config
from .manager import create_manager
from .service_runner import run_async_service
from .settings_store import SqliteSettingsStore
from .web_server import create_app, serve

logger = logging.getLogger(__name__)

SERVICE_NAME = "hytale-manager"


async def run_manager_service(config: ManagerConfig) -> None:
    ensure_directories(config)
    store = SqliteSettingsStore(config.settings_db_path)
    manager = create_manager(config, store)
    if not config.owner_token:
        logger.warning("HYTALE_MANAGER_OWNER_TOKEN is not set; WebSocket connections will be rejected.")
    if config.auto_initialize:
        manager.initialize_if_needed()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            logger.debug("Signal handlers unavailable for %s", sig)

    try:
        await serve(create_app(manager, owner_token=config.owner_token), config.web_host, config.web_port, stop_event)
    finally:
        store.close()


def main() -> None:
    try:
        config = load_manager_config()
    except ConfigurationError as exc:
        sys.stderr.write(f"Configuration error: {exc}\n")
        raise SystemExit(2) from exc

    run_async_service(
        lambda: run_manager_service(config),
        service_name=SERVICE_NAME,
        runtime_dir=config.data_dir / "runtime",
        log_dir=config.data_dir / "logs",
        shutdown_message="Hytale manager stopped",
    )


if __name__ == "__main__":
    main()
