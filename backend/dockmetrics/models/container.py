"""Container records returned by the runtime reader and control surface."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ContainerInfo:
    """Container as listed by the runtime."""

    id: str
    name: str
    state: str
    is_running: bool
    is_paused: bool
    created: int = 0


@dataclass(frozen=True)
class ContainerStatus:
    """Real-time container status from an inspect call."""

    id: str
    name: str
    status: str
    running: bool
    paused: bool


@dataclass(frozen=True)
class KnownContainer:
    """Container identity recovered from stored snapshots."""

    host_id: str
    host_name: str
    container_id: str
    container_name: str


@dataclass(frozen=True)
class ControlOutcome:
    """Result of a runtime lifecycle call."""

    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ControlResult:
    """Result of a control action as reported to API callers."""

    success: bool
    action: str
    container_id: str
    error: Optional[str] = None
