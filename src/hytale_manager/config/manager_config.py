"""Manager configuration assembled from the environment.

All durations are exposed in seconds even though the environment variables
carry milliseconds, matching the units the asyncio APIs consume.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError
from .runtime import env_bool, env_int, env_milliseconds, env_path, env_str

DEFAULT_START_ARGS = "-XX:AOTCache=HytaleServer.aot -jar HytaleServer.jar --assets Assets.zip"
DEFAULT_METRICS_SAMPLE_INTERVAL_MS = 2_000
DEFAULT_METRICS_HISTORY_POINTS = 300
MAX_METRICS_HISTORY_POINTS = 10_000


@dataclass(frozen=True)
class DownloaderConfig:
    """OAuth device-flow and account-data endpoints used by the server downloader."""

    environment: str = "release"
    oauth_host: str = "oauth.accounts.hytale.com"
    account_data_host: str = "account-data.hytale.com"
    client_id: str = "hytale-downloader"
    scope: str = "auth:downloader"
    auto_open_browser: bool = True
    api_timeout_seconds: float = 30.0
    download_timeout_seconds: float = 3_600.0
    extract_timeout_seconds: float = 1_800.0
    device_poll_timeout_seconds: float = 600.0
    patchline: str = "release"


@dataclass(frozen=True)
class JavaRuntimeConfig:
    """Adoptium release lookup for the managed Java runtime."""

    adoptium_api_host: str = "api.adoptium.net"
    feature_version: int = 25
    download_timeout_seconds: float = 3_600.0
    extract_timeout_seconds: float = 900.0


@dataclass(frozen=True)
class ManagerConfig:
    """Resolved paths, timeouts and limits for one manager deployment."""

    data_dir: Path
    server_dir: Path
    backups_dir: Path
    uploads_dir: Path
    tools_dir: Path
    managed_java_dir: Path
    download_cache_dir: Path
    credentials_path: Path
    settings_db_path: Path
    downloader: DownloaderConfig = field(default_factory=DownloaderConfig)
    java: JavaRuntimeConfig = field(default_factory=JavaRuntimeConfig)
    download_concurrency: int = 6
    download_progress_interval_seconds: float = 2.0
    start_args: str = DEFAULT_START_ARGS
    stop_command: str = "/stop"
    shutdown_timeout_seconds: float = 15.0
    terminate_timeout_seconds: float = 5.0
    stream_drain_timeout_seconds: float = 2.0
    terminal_buffer_lines: int = 4_000
    metrics_sample_interval_seconds: float = DEFAULT_METRICS_SAMPLE_INTERVAL_MS / 1000
    metrics_history_limit: int = DEFAULT_METRICS_HISTORY_POINTS
    web_host: str = "127.0.0.1"
    web_port: int = 3000
    owner_token: Optional[str] = None
    auto_initialize: bool = True

    @classmethod
    def for_data_dir(cls, data_dir: Path, **overrides) -> "ManagerConfig":
        """Build a config whose directories all live under ``data_dir``."""
        tools_dir = data_dir / "tools"
        values = dict(
            data_dir=data_dir,
            server_dir=data_dir / "hytale-server",
            backups_dir=data_dir / "backups",
            uploads_dir=data_dir / "uploads",
            tools_dir=tools_dir,
            managed_java_dir=tools_dir / "temurin-jdk-25",
            download_cache_dir=tools_dir / "download-cache",
            credentials_path=data_dir / ".hytale-downloader-credentials.json",
            settings_db_path=data_dir / "app.sqlite",
        )
        values.update(overrides)
        return cls(**values)

    @property
    def effective_download_concurrency(self) -> int:
        return max(1, min(16, int(self.download_concurrency) or 1))

    @property
    def effective_progress_interval_seconds(self) -> float:
        return max(0.25, self.download_progress_interval_seconds)


def clamp_metrics_interval_ms(configured: int) -> int:
    if configured < 250:
        return DEFAULT_METRICS_SAMPLE_INTERVAL_MS
    return configured


def clamp_metrics_history_points(configured: int) -> int:
    if configured < 10:
        return DEFAULT_METRICS_HISTORY_POINTS
    return min(MAX_METRICS_HISTORY_POINTS, configured)


def _seconds(name: str, default_ms: int) -> float:
    return env_milliseconds(name, default_ms) / 1000


def load_manager_config() -> ManagerConfig:
    """Read every manager setting from the environment (and .env fallbacks)."""

    cwd = Path(env_str("HYTALE_MANAGER_CWD", or_value=os.getcwd())).expanduser().resolve()
    data_dir = env_path("DATA_DIR", cwd / "data", base_dir=cwd)
    tools_dir = env_path("TOOLS_DIR", data_dir / "tools", base_dir=cwd)

    downloader = DownloaderConfig(
        environment=env_str("HYTALE_DOWNLOADER_ENVIRONMENT", or_value="release"),
        oauth_host=env_str("HYTALE_OAUTH_HOST", or_value="oauth.accounts.hytale.com"),
        account_data_host=env_str("HYTALE_ACCOUNT_DATA_HOST", or_value="account-data.hytale.com"),
        client_id=env_str("HYTALE_DOWNLOADER_CLIENT_ID", or_value="hytale-downloader"),
        scope=env_str("HYTALE_DOWNLOADER_SCOPE", or_value="auth:downloader"),
        auto_open_browser=env_bool("HYTALE_OAUTH_AUTO_OPEN_BROWSER", or_value=True),
        api_timeout_seconds=_seconds("HYTALE_DOWNLOADER_API_TIMEOUT_MS", 30_000),
        download_timeout_seconds=_seconds("HYTALE_DOWNLOADER_DOWNLOAD_TIMEOUT_MS", 3_600_000),
        extract_timeout_seconds=_seconds("HYTALE_DOWNLOADER_EXTRACT_TIMEOUT_MS", 1_800_000),
        device_poll_timeout_seconds=_seconds("HYTALE_OAUTH_DEVICE_POLL_TIMEOUT_MS", 600_000),
        patchline=(env_str("HYTALE_PATCHLINE", or_value="release") or "release"),
    )
    java = JavaRuntimeConfig(
        adoptium_api_host=env_str("HYTALE_ADOPTIUM_API_HOST", or_value="api.adoptium.net"),
        feature_version=env_int("HYTALE_ADOPTIUM_FEATURE_VERSION", or_value=25),
        download_timeout_seconds=_seconds("HYTALE_JAVA_DOWNLOAD_TIMEOUT_MS", 3_600_000),
        extract_timeout_seconds=_seconds("HYTALE_JAVA_EXTRACT_TIMEOUT_MS", 900_000),
    )

    web_port = env_int("PORT", or_value=3000)
    if not 1 <= web_port <= 65535:
        raise ConfigurationError.invalid_format("PORT", str(web_port), "an integer between 1 and 65535")

    return ManagerConfig(
        data_dir=data_dir,
        server_dir=env_path("HYTALE_SERVER_DIR", data_dir / "hytale-server", base_dir=cwd),
        backups_dir=env_path("BACKUPS_DIR", data_dir / "backups", base_dir=cwd),
        uploads_dir=env_path("UPLOADS_DIR", data_dir / "uploads", base_dir=cwd),
        tools_dir=tools_dir,
        managed_java_dir=env_path("HYTALE_MANAGED_JAVA_DIR", tools_dir / "temurin-jdk-25", base_dir=cwd),
        download_cache_dir=env_path("HYTALE_DOWNLOAD_CACHE_DIR", tools_dir / "download-cache", base_dir=cwd),
        credentials_path=env_path(
            "HYTALE_DOWNLOADER_CREDENTIALS_PATH", data_dir / ".hytale-downloader-credentials.json", base_dir=cwd
        ),
        settings_db_path=data_dir / "app.sqlite",
        downloader=downloader,
        java=java,
        download_concurrency=env_int("HYTALE_DOWNLOAD_CONCURRENCY", or_value=6),
        download_progress_interval_seconds=_seconds("HYTALE_DOWNLOAD_PROGRESS_INTERVAL_MS", 2_000),
        start_args=env_str("HYTALE_START_ARGS", or_value=DEFAULT_START_ARGS),
        stop_command=env_str("HYTALE_STOP_COMMAND", or_value="/stop"),
        shutdown_timeout_seconds=_seconds("HYTALE_SHUTDOWN_TIMEOUT_MS", 15_000),
        terminate_timeout_seconds=_seconds("HYTALE_TERMINATE_TIMEOUT_MS", 5_000),
        stream_drain_timeout_seconds=_seconds("HYTALE_STREAM_DRAIN_TIMEOUT_MS", 2_000),
        terminal_buffer_lines=max(1, env_int("TERMINAL_BUFFER_LINES", or_value=4_000)),
        metrics_sample_interval_seconds=clamp_metrics_interval_ms(
            env_int("HYTALE_METRICS_SAMPLE_INTERVAL_MS", or_value=DEFAULT_METRICS_SAMPLE_INTERVAL_MS)
        )
        / 1000,
        metrics_history_limit=clamp_metrics_history_points(
            env_int("HYTALE_METRICS_HISTORY_POINTS", or_value=DEFAULT_METRICS_HISTORY_POINTS)
        ),
        web_host=env_str("HOST", or_value="127.0.0.1"),
        web_port=web_port,
        owner_token=env_str("HYTALE_MANAGER_OWNER_TOKEN"),
        auto_initialize=env_bool("HYTALE_AUTO_INITIALIZE", or_value=True),
    )


def ensure_directories(config: ManagerConfig) -> None:
    """Create every directory the manager writes into."""
    for directory in (
        config.data_dir,
        config.uploads_dir,
        config.backups_dir,
        config.tools_dir,
        config.managed_java_dir.parent,
        config.download_cache_dir,
        config.credentials_path.parent,
        config.server_dir,
        config.server_dir / "mods",
        config.server_dir / "logs",
    ):
        directory.mkdir(parents=True, exist_ok=True)
