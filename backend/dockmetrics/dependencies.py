"""Service wiring and FastAPI dependencies for route handlers.

Every service is constructed once per application by ``init_app_state``
and stored on ``app.state``. Handlers receive them through the getters
below, so tests can swap in their own instances.
"""

from typing import Any, Callable, Optional

import httpx
from fastapi import FastAPI, Request

from dockmetrics.config import Settings
from dockmetrics.models.host import HostConfig
from dockmetrics.services.collector import MetricsCollector
from dockmetrics.services.container_control import ContainerControlService
from dockmetrics.services.docker_pool import DockerClientPool
from dockmetrics.services.docker_stats import DockerStatsService
from dockmetrics.services.host_health import HostHealthTracker
from dockmetrics.services.host_registry import HostRegistry
from dockmetrics.services.metrics_store import MetricsStore
from dockmetrics.services.pressure_reader import PressureReader
from dockmetrics.services.proxy import ProxyService
from dockmetrics.utils.url_validation import AllowedOrigin, build_allow_list


def init_app_state(
    app: FastAPI,
    settings: Settings,
    docker_factory: Optional[Callable[..., DockerStatsService]] = None,
    proxy_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """Construct the store, tracker, registry, pool and services for ``app``."""
    pressure_reader = PressureReader(settings.cgroup_root)
    default_host = HostConfig(
        id=settings.local_host_id,
        name=settings.local_host_name,
        url=settings.docker_host_url,
    )
    registry = HostRegistry(settings.hosts_config_path, default_host)
    store = MetricsStore(
        retention=settings.retention, default_window=settings.default_query_window
    )
    tracker = HostHealthTracker()
    pool = DockerClientPool(
        pressure_reader=pressure_reader,
        timeout=settings.docker_timeout_seconds,
        factory=docker_factory,
    )

    def allowed_origins() -> list[AllowedOrigin]:
        entries = [host.url for host in registry.list()] + settings.proxy_allowed_origins
        return build_allow_list(entries)

    app.state.settings = settings
    app.state.pressure_reader = pressure_reader
    app.state.registry = registry
    app.state.store = store
    app.state.tracker = tracker
    app.state.pool = pool
    app.state.control = ContainerControlService(registry, pool)
    app.state.proxy = ProxyService(
        allowed_origins=allowed_origins,
        allow_any="*" in settings.proxy_allowed_origins,
        timeout=settings.proxy_timeout_seconds,
        transport=proxy_transport,
    )
    app.state.collector = MetricsCollector(
        store=store,
        tracker=tracker,
        registry=registry,
        pool=pool,
        poll_interval=settings.poll_interval_seconds,
        trim_interval=settings.trim_interval_seconds,
        retention=settings.retention,
        startup_retry=settings.startup_retry_seconds,
    )


def _state(request: Request, name: str) -> Any:
    return getattr(request.app.state, name)


def get_settings(request: Request) -> Settings:
    return _state(request, "settings")


def get_store(request: Request) -> MetricsStore:
    return _state(request, "store")


def get_tracker(request: Request) -> HostHealthTracker:
    return _state(request, "tracker")


def get_registry(request: Request) -> HostRegistry:
    return _state(request, "registry")


def get_pool(request: Request) -> DockerClientPool:
    return _state(request, "pool")


def get_pressure_reader(request: Request) -> PressureReader:
    return _state(request, "pressure_reader")


def get_control(request: Request) -> ContainerControlService:
    return _state(request, "control")


def get_proxy(request: Request) -> ProxyService:
    return _state(request, "proxy")


def get_docker_service(request: Request, host_id: Optional[str] = None) -> DockerStatsService:
    """Pooled Docker service for ``host_id``, the local host when omitted.

    Raises:
        HostNotFound: If the host is not registered
    """
    settings = get_settings(request)
    registry = get_registry(request)
    host = registry.get(host_id or settings.local_host_id)
    return get_pool(request).get(host)
