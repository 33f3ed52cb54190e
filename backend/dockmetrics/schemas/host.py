"""Pydantic schemas for the host registry."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from dockmetrics.schemas.base import CamelModel


class HostStatusSchema(CamelModel):
    """Registered host joined with its health and container count."""

    id: str
    name: str
    url: str
    enabled: bool
    last_seen: Optional[datetime] = None
    is_healthy: bool
    last_error: Optional[str] = None
    container_count: int = 0


class HostCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    url: str = Field(..., min_length=1, max_length=500)
    enabled: bool = True


class HostUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    url: Optional[str] = Field(None, min_length=1, max_length=500)
    enabled: Optional[bool] = None


class HostConfigSchema(CamelModel):
    id: str
    name: str
    url: str
    enabled: bool
