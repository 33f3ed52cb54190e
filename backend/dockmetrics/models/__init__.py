"""Domain records."""

from dockmetrics.models.container import (
    ContainerInfo,
    ContainerStatus,
    ControlOutcome,
    ControlResult,
    KnownContainer,
)
from dockmetrics.models.host import HostConfig, HostHealth, HostState, HostStatus
from dockmetrics.models.snapshot import (
    ContainerMetricSnapshot,
    HostMetricSnapshot,
    PressureMetrics,
)

__all__ = [
    "ContainerInfo",
    "ContainerMetricSnapshot",
    "ContainerStatus",
    "ControlOutcome",
    "ControlResult",
    "HostConfig",
    "HostHealth",
    "HostMetricSnapshot",
    "HostState",
    "HostStatus",
    "KnownContainer",
    "PressureMetrics",
]
