"""Pytest configuration and fixtures."""

import os
from datetime import UTC, datetime
from typing import AsyncGenerator, Callable, Dict
from unittest.mock import MagicMock

import httpx
import pytest

# Disable the background collector before the app module is imported
os.environ["DOCKMETRICS_TESTING"] = "true"

from dockmetrics.config import Settings  # noqa: E402
from dockmetrics.dependencies import init_app_state  # noqa: E402
from dockmetrics.models.snapshot import ContainerMetricSnapshot, HostMetricSnapshot  # noqa: E402
from dockmetrics.services.docker_stats import DockerStatsService  # noqa: E402
from dockmetrics.services.host_health import HostHealthTracker  # noqa: E402
from dockmetrics.services.metrics_store import MetricsStore  # noqa: E402

LOCAL_HOST_ID = "local"
LOCAL_HOST_NAME = "test-host"


@pytest.fixture
def make_snapshot() -> Callable[..., ContainerMetricSnapshot]:
    """Factory fixture for ContainerMetricSnapshot with sensible defaults."""

    def _make_snapshot(**kwargs) -> ContainerMetricSnapshot:
        defaults = {
            "host_id": LOCAL_HOST_ID,
            "host_name": LOCAL_HOST_NAME,
            "container_id": "c1",
            "container_name": "web",
            "timestamp": datetime.now(UTC),
            "cpu_percent": 12.5,
            "memory_bytes": 64 * 1024 * 1024,
            "memory_percent": 3.2,
            "network_rx_bytes": 1000,
            "network_tx_bytes": 2000,
            "disk_read_bytes": 4096,
            "disk_write_bytes": 8192,
            "uptime_seconds": 3600,
            "is_running": True,
        }
        defaults.update(kwargs)
        return ContainerMetricSnapshot(**defaults)

    return _make_snapshot


@pytest.fixture
def make_host_snapshot() -> Callable[..., HostMetricSnapshot]:
    def _make_host_snapshot(**kwargs) -> HostMetricSnapshot:
        defaults = {
            "host_id": LOCAL_HOST_ID,
            "hostname": LOCAL_HOST_NAME,
            "timestamp": datetime.now(UTC),
            "cpu_percent": 25.0,
            "cpu_frequency_mhz": 2400.0,
            "memory_bytes": 2 * 1024**3,
            "memory_percent": 40.0,
            "uptime_seconds": 86400,
            "is_up": True,
        }
        defaults.update(kwargs)
        return HostMetricSnapshot(**defaults)

    return _make_host_snapshot


@pytest.fixture
def store() -> MetricsStore:
    return MetricsStore()


@pytest.fixture
def tracker() -> HostHealthTracker:
    return HostHealthTracker()


def make_mock_docker_service(host_id: str, host_name: str, base_url: str) -> MagicMock:
    """MagicMock standing in for DockerStatsService. Async methods are AsyncMocks."""
    service = MagicMock(spec=DockerStatsService)
    service.host_id = host_id
    service.host_name = host_name
    service.base_url = base_url.rstrip("/")
    service.docker_version = "24.0.7"
    service.ping.return_value = None
    service.check_connection.return_value = True
    service.list_containers.return_value = []
    service.get_info.return_value = {"NCPU": 4, "MemTotal": 8 * 1024**3, "Name": host_name}
    return service


@pytest.fixture
def docker_services() -> Dict[str, MagicMock]:
    """Mock Docker services by host id. Pre-populate to configure a host's runtime."""
    return {}


@pytest.fixture
def docker_factory(docker_services):
    """Pool factory that hands out (and remembers) mock Docker services."""

    def _factory(host_id, host_name, base_url, timeout=30, pressure_reader=None):
        service = docker_services.get(host_id)
        if service is None:
            service = make_mock_docker_service(host_id, host_name, base_url)
            docker_services[host_id] = service
        service.host_name = host_name
        service.base_url = base_url.rstrip("/")
        return service

    return _factory


@pytest.fixture
def local_docker(docker_services) -> MagicMock:
    """Mock Docker service for the local host."""
    service = make_mock_docker_service(LOCAL_HOST_ID, LOCAL_HOST_NAME, "unix:///var/run/docker.sock")
    docker_services[LOCAL_HOST_ID] = service
    return service


class UpstreamRecorder:
    """httpx MockTransport handler that records every request it receives."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"ok": True}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def upstream() -> UpstreamRecorder:
    return UpstreamRecorder()


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    """Settings pointed at temporary paths."""
    monkeypatch.setenv("DOCKER_HOST_URL", "unix:///var/run/docker.sock")
    monkeypatch.setenv("LOCAL_HOST_ID", LOCAL_HOST_ID)
    monkeypatch.setenv("LOCAL_HOST_NAME", LOCAL_HOST_NAME)
    monkeypatch.setenv("HOSTS_CONFIG_PATH", str(tmp_path / "hosts.json"))
    monkeypatch.setenv("CGROUP_ROOT", str(tmp_path / "cgroup"))
    monkeypatch.setenv("PROXY_ALLOWED_ORIGINS", "http://agent.lan:5000")
    monkeypatch.setenv("DOCKMETRICS_TESTING", "true")
    return Settings()


@pytest.fixture
async def app(settings, docker_factory, upstream):
    """Application with fresh services and mocked Docker and upstream transports."""
    from dockmetrics.main import app as fastapi_app

    init_app_state(
        fastapi_app,
        settings,
        docker_factory=docker_factory,
        proxy_transport=httpx.MockTransport(upstream),
    )
    yield fastapi_app


@pytest.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create a test HTTP client."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
