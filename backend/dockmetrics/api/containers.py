"""Container listing, status and lifecycle control endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from dockmetrics.dependencies import get_control, get_docker_service
from dockmetrics.schemas.container import (
    ContainerListItem,
    ContainerStatusSchema,
    ControlResultSchema,
)
from dockmetrics.services.container_control import ContainerControlService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[ContainerListItem])
async def list_containers(
    request: Request,
    all: bool = Query(False, description="Include stopped containers"),
    host_id: Optional[str] = Query(None, alias="hostId"),
) -> List[ContainerListItem]:
    """List containers on a host (the local host when hostId is omitted)."""
    service = get_docker_service(request, host_id)
    containers = await service.list_containers(all=all)
    return [ContainerListItem(id=c.id, name=c.name, state=c.state) for c in containers]


@router.get("/{container_id}/status", response_model=ContainerStatusSchema)
async def get_container_status(
    request: Request,
    container_id: str,
    host_id: Optional[str] = Query(None, alias="hostId"),
) -> ContainerStatusSchema:
    """Real-time status from the runtime, bypassing the metrics store."""
    service = get_docker_service(request, host_id)
    status = await service.get_container_status(container_id)
    return ContainerStatusSchema.model_validate(status)


@router.post("/{host_id}/{container_id}/{action}", response_model=ControlResultSchema)
async def control_container(
    host_id: str,
    container_id: str,
    action: str,
    control: ContainerControlService = Depends(get_control),
):
    """Start, stop, restart, pause or unpause a container.

    A runtime-reported failure (for example stopping a stopped container)
    returns 409 with ``success=false`` and the runtime's message.
    """
    result = await control.execute(host_id, container_id, action)
    body = ControlResultSchema.model_validate(result)
    if not result.success:
        return JSONResponse(status_code=409, content=body.model_dump(by_alias=True))
    return body
