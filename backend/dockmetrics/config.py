"""Runtime configuration read from the environment."""

import logging
import os
import socket
from datetime import timedelta
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r}, using default {default}")
        return default


def _get_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _get_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """Snapshot of environment configuration.

    Built once at startup. Tests construct their own instance after
    patching the environment.
    """

    def __init__(self) -> None:
        self.docker_host_url: str = os.getenv("DOCKER_HOST_URL", "unix:///var/run/docker.sock")
        self.local_host_id: str = os.getenv("LOCAL_HOST_ID", "local")
        self.local_host_name: str = os.getenv("LOCAL_HOST_NAME", socket.gethostname())
        self.hosts_config_path: Path = Path(os.getenv("HOSTS_CONFIG_PATH", "/data/hosts.json"))

        self.poll_interval_seconds: int = max(1, _get_int("POLL_INTERVAL_SECONDS", 10))
        self.trim_interval_seconds: int = max(1, _get_int("TRIM_INTERVAL_SECONDS", 300))
        self.startup_retry_seconds: int = max(1, _get_int("STARTUP_RETRY_SECONDS", 5))
        self.retention: timedelta = timedelta(hours=_get_int("RETENTION_HOURS", 24))
        self.default_query_window: timedelta = timedelta(
            hours=_get_int("DEFAULT_QUERY_WINDOW_HOURS", 6)
        )

        self.cgroup_root: Path = Path(os.getenv("CGROUP_ROOT", "/sys/fs/cgroup"))
        self.docker_timeout_seconds: int = _get_int("DOCKER_TIMEOUT_SECONDS", 30)
        self.proxy_timeout_seconds: int = _get_int("PROXY_TIMEOUT_SECONDS", 30)
        self.proxy_allowed_origins: list[str] = _get_list("PROXY_ALLOWED_ORIGINS")
        self.cors_origins: list[str] = _get_list("CORS_ORIGINS") or ["*"]

        self.debug: bool = _get_bool("DOCKMETRICS_DEBUG")
        self.testing: bool = _get_bool("DOCKMETRICS_TESTING")


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings()
