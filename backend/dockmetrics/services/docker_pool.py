"""Per-host Docker client pool."""

import logging
import threading
from typing import Callable, Dict, Optional

from dockmetrics.models.host import HostConfig
from dockmetrics.services.docker_stats import DockerStatsService
from dockmetrics.services.pressure_reader import PressureReader

logger = logging.getLogger(__name__)


def is_local_url(url: str) -> bool:
    """True for endpoints that share this process's kernel (unix socket)."""
    return url.startswith("unix://") or url.startswith("npipe://")


class DockerClientPool:
    """Creates and caches one ``DockerStatsService`` per configured host.

    A cached service is replaced when its host URL or name changes. The
    pressure reader is only attached to hosts reached through a local
    socket, since cgroup files describe this machine's kernel.
    """

    def __init__(
        self,
        pressure_reader: Optional[PressureReader] = None,
        timeout: int = 30,
        factory: Optional[Callable[..., DockerStatsService]] = None,
    ) -> None:
        self.pressure_reader = pressure_reader
        self.timeout = timeout
        self._factory = factory or DockerStatsService
        self._services: Dict[str, DockerStatsService] = {}
        self._lock = threading.Lock()

    def get(self, host: HostConfig) -> DockerStatsService:
        with self._lock:
            service = self._services.get(host.id)
            if service is not None and service.base_url == host.url.rstrip("/") and service.host_name == host.name:
                return service

            if service is not None:
                logger.info(f"Host {host.id} endpoint changed, recreating Docker client")
                service.close()

            service = self._factory(
                host_id=host.id,
                host_name=host.name,
                base_url=host.url,
                timeout=self.timeout,
                pressure_reader=self.pressure_reader if is_local_url(host.url) else None,
            )
            self._services[host.id] = service
            return service

    def remove(self, host_id: str) -> None:
        with self._lock:
            service = self._services.pop(host_id, None)
        if service is not None:
            service.close()

    def close_all(self) -> None:
        with self._lock:
            services = list(self._services.values())
            self._services.clear()
        for service in services:
            service.close()
