"""Host registry and health records."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class HostConfig:
    """Operator-supplied Docker host endpoint."""

    id: str
    name: str
    url: str
    enabled: bool = True


class HostState(str, Enum):
    """Reachability state of a host."""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class HostHealth:
    """Last observed health of a host."""

    last_checked: datetime
    healthy: bool
    last_error: Optional[str] = None
    last_seen: Optional[datetime] = None


@dataclass(frozen=True)
class HostStatus:
    """Host config joined with runtime health, computed at read time."""

    id: str
    name: str
    url: str
    enabled: bool
    last_seen: Optional[datetime]
    is_healthy: bool
    last_error: Optional[str]
    container_count: int
