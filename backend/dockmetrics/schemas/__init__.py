"""API request and response schemas."""

from dockmetrics.schemas.container import (
    ContainerListItem,
    ContainerStatusSchema,
    ControlResultSchema,
)
from dockmetrics.schemas.host import HostConfigSchema, HostCreate, HostStatusSchema, HostUpdate
from dockmetrics.schemas.metrics import (
    ContainerMetricSchema,
    HostMetricSchema,
    KnownContainerSchema,
    StoreStatsSchema,
)
from dockmetrics.schemas.system import AgentInfoSchema

__all__ = [
    "AgentInfoSchema",
    "ContainerListItem",
    "ContainerMetricSchema",
    "ContainerStatusSchema",
    "ControlResultSchema",
    "HostConfigSchema",
    "HostCreate",
    "HostMetricSchema",
    "HostStatusSchema",
    "HostUpdate",
    "KnownContainerSchema",
    "StoreStatsSchema",
]
