"""Agent information and store diagnostics."""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request

from dockmetrics import __version__
from dockmetrics.config import Settings
from dockmetrics.dependencies import (
    get_docker_service,
    get_pressure_reader,
    get_registry,
    get_settings,
    get_store,
    get_tracker,
)
from dockmetrics.schemas.metrics import StoreStatsSchema
from dockmetrics.schemas.system import AgentInfoSchema
from dockmetrics.services.host_health import HostHealthTracker
from dockmetrics.services.host_registry import HostRegistry
from dockmetrics.services.metrics_store import MetricsStore
from dockmetrics.services.pressure_reader import PressureReader

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/stats", response_model=StoreStatsSchema)
async def get_stats(
    registry: HostRegistry = Depends(get_registry),
    tracker: HostHealthTracker = Depends(get_tracker),
    store: MetricsStore = Depends(get_store),
) -> StoreStatsSchema:
    """Host, container and point counts."""
    stats = store.stats()
    health = tracker.get_all()
    hosts = registry.list()
    return StoreStatsSchema(
        hosts=len(hosts),
        healthy_hosts=sum(1 for h in hosts if h.id in health and health[h.id].healthy),
        containers=stats.series_count,
        points=stats.total_points,
        series_count=stats.series_count,
        host_points=stats.host_points,
        timestamp=datetime.now(UTC),
    )


@router.get("/info", response_model=AgentInfoSchema)
async def get_info(
    request: Request,
    settings: Settings = Depends(get_settings),
    pressure_reader: PressureReader = Depends(get_pressure_reader),
) -> AgentInfoSchema:
    """Local agent identity, Docker connectivity and PSI support."""
    service = get_docker_service(request, settings.local_host_id)
    connected = await service.check_connection()
    return AgentInfoSchema(
        hostname=settings.local_host_name,
        agent_version=__version__,
        docker_version=service.docker_version,
        docker_connected=connected,
        psi_supported=pressure_reader.is_supported,
    )
