"""Host registry endpoints."""

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from dockmetrics.dependencies import get_pool, get_registry, get_store, get_tracker
from dockmetrics.schemas.host import HostConfigSchema, HostCreate, HostStatusSchema, HostUpdate
from dockmetrics.services.docker_pool import DockerClientPool
from dockmetrics.services.host_health import HostHealthTracker
from dockmetrics.services.host_registry import HostRegistry
from dockmetrics.services.metrics_store import MetricsStore
from dockmetrics.utils.error_handling import safe_error_response
from dockmetrics.utils.security import sanitize_log_message

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[HostStatusSchema])
async def list_hosts(
    registry: HostRegistry = Depends(get_registry),
    tracker: HostHealthTracker = Depends(get_tracker),
    store: MetricsStore = Depends(get_store),
) -> List[HostStatusSchema]:
    """Registered hosts with their health and container counts.

    A host that has not been polled yet reports ``isHealthy=false`` with
    no ``lastSeen``.
    """
    health = tracker.get_all()
    counts = store.container_count_by_host()
    result = []
    for host in registry.list():
        state = health.get(host.id)
        result.append(
            HostStatusSchema(
                id=host.id,
                name=host.name,
                url=host.url,
                enabled=host.enabled,
                last_seen=state.last_seen if state else None,
                is_healthy=state.healthy if state else False,
                last_error=state.last_error if state else None,
                container_count=counts.get(host.id, 0),
            )
        )
    return result


@router.post("", response_model=HostConfigSchema, status_code=status.HTTP_201_CREATED)
async def create_host(
    payload: HostCreate,
    registry: HostRegistry = Depends(get_registry),
) -> HostConfigSchema:
    try:
        host = registry.add(payload.name, payload.url, payload.enabled)
    except ValueError as e:
        safe_error_response(logger, e, f"Invalid host URL: {e}", status_code=400, log_level="warning")
    return HostConfigSchema.model_validate(host)


@router.put("/{host_id}", response_model=HostConfigSchema)
async def update_host(
    host_id: str,
    payload: HostUpdate,
    registry: HostRegistry = Depends(get_registry),
    pool: DockerClientPool = Depends(get_pool),
) -> HostConfigSchema:
    try:
        host = registry.update(
            host_id, name=payload.name, url=payload.url, enabled=payload.enabled
        )
    except ValueError as e:
        safe_error_response(logger, e, f"Invalid host URL: {e}", status_code=400, log_level="warning")
    if not host.enabled:
        pool.remove(host.id)
    return HostConfigSchema.model_validate(host)


@router.delete("/{host_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_host(
    host_id: str,
    registry: HostRegistry = Depends(get_registry),
    tracker: HostHealthTracker = Depends(get_tracker),
    pool: DockerClientPool = Depends(get_pool),
) -> None:
    """Unregister a host. Its snapshots are evicted at the next trim."""
    registry.remove(host_id)
    tracker.remove(host_id)
    pool.remove(host_id)
    logger.info(f"Host {sanitize_log_message(host_id)} deleted via API")
