"""Pydantic schemas for agent information."""

from typing import Optional

from dockmetrics.schemas.base import CamelModel


class AgentInfoSchema(CamelModel):
    hostname: str
    agent_version: str
    docker_version: Optional[str] = None
    docker_connected: bool
    psi_supported: bool
