"""Pydantic schemas for container listing and control."""

from typing import Optional

from dockmetrics.schemas.base import CamelModel


class ContainerListItem(CamelModel):
    id: str
    name: str
    state: str


class ContainerStatusSchema(CamelModel):
    id: str
    name: str
    status: str
    running: bool
    paused: bool


class ControlResultSchema(CamelModel):
    """Outcome of a start/stop/restart/pause/unpause request."""

    success: bool
    action: str
    container_id: str
    error: Optional[str] = None
