"""Operator-managed registry of Docker hosts, persisted as JSON."""

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from dockmetrics.exceptions import HostNotFound
from dockmetrics.models.host import HostConfig
from dockmetrics.utils.error_handling import log_and_continue
from dockmetrics.utils.file_operations import AtomicWriteError, atomic_write_json
from dockmetrics.utils.security import validate_docker_url

logger = logging.getLogger(__name__)


def _host_from_dict(raw: Dict[str, Any]) -> HostConfig:
    return HostConfig(
        id=str(raw["id"]),
        name=str(raw.get("name") or raw["id"]),
        url=validate_docker_url(str(raw["url"])),
        enabled=bool(raw.get("enabled", True)),
    )


def _host_to_dict(host: HostConfig) -> Dict[str, Any]:
    return {"id": host.id, "name": host.name, "url": host.url, "enabled": host.enabled}


class HostRegistry:
    """Host list backed by a JSON file.

    The collection loop reads a fresh copy of the list every tick, so edits
    take effect on the next poll. When the file is missing or unreadable the
    registry starts with ``default_host`` only. Save failures are logged
    and the in-memory list stays authoritative.
    """

    def __init__(self, path: Optional[Path], default_host: HostConfig) -> None:
        self.path = path
        self.default_host = default_host
        self._lock = threading.Lock()
        self._hosts: Dict[str, HostConfig] = self._load()

    def _load(self) -> Dict[str, HostConfig]:
        fallback = {self.default_host.id: self.default_host}
        if self.path is None or not self.path.exists():
            return fallback

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read host registry {self.path}: {e}")
            return fallback

        hosts: Dict[str, HostConfig] = {}
        for raw in data.get("hosts", []) if isinstance(data, dict) else []:
            try:
                host = _host_from_dict(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping invalid host entry {raw!r}: {e}")
                continue
            hosts[host.id] = host

        if not hosts:
            return fallback
        logger.info(f"Loaded {len(hosts)} host(s) from {self.path}")
        return hosts

    def _save(self) -> None:
        if self.path is None:
            return
        payload = {"hosts": [_host_to_dict(h) for h in self._hosts.values()]}
        try:
            atomic_write_json(self.path, payload)
        except AtomicWriteError as e:
            log_and_continue(logger, e, "Failed to persist host registry", log_level="error")

    def list(self) -> List[HostConfig]:
        with self._lock:
            return list(self._hosts.values())

    def enabled(self) -> List[HostConfig]:
        return [host for host in self.list() if host.enabled]

    def get(self, host_id: str) -> HostConfig:
        with self._lock:
            host = self._hosts.get(host_id)
        if host is None:
            raise HostNotFound(host_id)
        return host

    def add(self, name: str, url: str, enabled: bool = True) -> HostConfig:
        """Register a new host under a generated id.

        Raises:
            ValueError: If the URL is not a supported Docker endpoint
        """
        host = HostConfig(
            id=uuid.uuid4().hex[:12],
            name=name.strip() or url,
            url=validate_docker_url(url),
            enabled=enabled,
        )
        with self._lock:
            self._hosts[host.id] = host
            self._save()
        logger.info(f"Registered host {host.id} ({host.name})")
        return host

    def update(
        self,
        host_id: str,
        name: Optional[str] = None,
        url: Optional[str] = None,
        enabled: Optional[bool] = None,
    ) -> HostConfig:
        """Change fields of an existing host. None leaves a field as is.

        Raises:
            HostNotFound: If the host id is unknown
            ValueError: If the new URL is not a supported Docker endpoint
        """
        new_url = validate_docker_url(url) if url is not None else None
        with self._lock:
            current = self._hosts.get(host_id)
            if current is None:
                raise HostNotFound(host_id)
            updated = HostConfig(
                id=current.id,
                name=name.strip() if name and name.strip() else current.name,
                url=new_url or current.url,
                enabled=current.enabled if enabled is None else enabled,
            )
            self._hosts[host_id] = updated
            self._save()
        return updated

    def remove(self, host_id: str) -> HostConfig:
        """Unregister a host.

        Raises:
            HostNotFound: If the host id is unknown
        """
        with self._lock:
            host = self._hosts.pop(host_id, None)
            if host is None:
                raise HostNotFound(host_id)
            self._save()
        logger.info(f"Removed host {host_id} ({host.name})")
        return host
