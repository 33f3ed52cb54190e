"""Metric query endpoints backed by the in-memory store."""

from datetime import UTC, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from dockmetrics.dependencies import get_store
from dockmetrics.schemas.metrics import (
    ContainerMetricSchema,
    HostMetricSchema,
    KnownContainerSchema,
)
from dockmetrics.services.metrics_store import MetricsFilter, MetricsStore

router = APIRouter()


def _id_set(raw: Optional[str]) -> Optional[frozenset[str]]:
    """Parse a comma-separated id list. Blank means no filter."""
    if raw is None:
        return None
    ids = frozenset(part.strip() for part in raw.split(",") if part.strip())
    return ids or None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Timestamps without an offset are taken as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@router.get("/containers", response_model=List[ContainerMetricSchema])
async def get_container_metrics(
    id: Optional[str] = Query(None, description="Container id(s), comma-separated"),
    host_id: Optional[str] = Query(None, alias="hostId", description="Host id(s), comma-separated"),
    start: Optional[datetime] = Query(None, alias="from"),
    end: Optional[datetime] = Query(None, alias="to"),
    latest: bool = Query(False, description="Newest in-range point per container"),
    limit: Optional[int] = Query(None, ge=1, le=10000, description="Newest points per container"),
    store: MetricsStore = Depends(get_store),
) -> List[ContainerMetricSchema]:
    """Container snapshots in a time range (default: the last 6 hours).

    hostId alone returns every container on those hosts, id alone returns
    those containers on every host, both together match exactly.
    """
    snapshots = store.query(
        MetricsFilter(
            container_ids=_id_set(id),
            host_ids=_id_set(host_id),
            start=_as_utc(start),
            end=_as_utc(end),
            latest=latest,
            limit=limit,
        )
    )
    return [ContainerMetricSchema.model_validate(s) for s in snapshots]


@router.get("/hosts", response_model=List[HostMetricSchema])
async def get_host_metrics(
    host_id: Optional[str] = Query(None, alias="hostId"),
    start: Optional[datetime] = Query(None, alias="from"),
    end: Optional[datetime] = Query(None, alias="to"),
    latest: bool = Query(False),
    store: MetricsStore = Depends(get_store),
) -> List[HostMetricSchema]:
    snapshots = store.query_hosts(
        start=_as_utc(start), end=_as_utc(end), host_ids=_id_set(host_id), latest=latest
    )
    return [HostMetricSchema.model_validate(s) for s in snapshots]


@router.get("/known-containers", response_model=List[KnownContainerSchema])
async def get_known_containers(
    host_id: Optional[str] = Query(None, alias="hostId"),
    store: MetricsStore = Depends(get_store),
) -> List[KnownContainerSchema]:
    """Containers with at least one retained snapshot."""
    return [KnownContainerSchema.model_validate(c) for c in store.get_known_containers(host_id)]
