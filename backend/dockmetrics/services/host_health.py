"""Per-host reachability tracking."""

import logging
import threading
from datetime import UTC, datetime
from typing import Callable, Dict, Optional

from dockmetrics.models.host import HostHealth, HostState

logger = logging.getLogger(__name__)


class HostHealthTracker:
    """Tracks health of configured Docker hosts.

    A host is UNKNOWN until its first recorded result, then flips between
    HEALTHY and UNHEALTHY. Writes are last-writer-wins per host; the
    collection loop serializes writes for a given host.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._health: Dict[str, HostHealth] = {}
        self._lock = threading.Lock()

    def record_success(self, host_id: str) -> None:
        now = self._clock()
        with self._lock:
            previous = self._health.get(host_id)
            self._health[host_id] = HostHealth(
                last_checked=now, healthy=True, last_error=None, last_seen=now
            )
        if previous is not None and not previous.healthy:
            logger.info(f"Host {host_id} recovered")

    def record_failure(self, host_id: str, error: str) -> None:
        now = self._clock()
        with self._lock:
            previous = self._health.get(host_id)
            self._health[host_id] = HostHealth(
                last_checked=now,
                healthy=False,
                last_error=error,
                last_seen=previous.last_seen if previous else None,
            )
        if previous is None or previous.healthy:
            logger.warning(f"Host {host_id} became unhealthy: {error}")

    def get(self, host_id: str) -> Optional[HostHealth]:
        with self._lock:
            return self._health.get(host_id)

    def get_all(self) -> Dict[str, HostHealth]:
        with self._lock:
            return dict(self._health)

    def state(self, host_id: str) -> HostState:
        health = self.get(host_id)
        if health is None:
            return HostState.UNKNOWN
        return HostState.HEALTHY if health.healthy else HostState.UNHEALTHY

    def remove(self, host_id: str) -> None:
        """Forget a host that was deleted from the registry."""
        with self._lock:
            self._health.pop(host_id, None)
