"""Host-level metric sampling."""

import logging
import time
from datetime import datetime
from typing import Any, Dict, Iterable

import psutil

from dockmetrics.models.snapshot import ContainerMetricSnapshot, HostMetricSnapshot

logger = logging.getLogger(__name__)


def sample_local_host(host_id: str, hostname: str, timestamp: datetime) -> HostMetricSnapshot:
    """Sample CPU, memory and uptime of the machine this process runs on.

    ``cpu_percent(interval=None)`` compares against the previous call, so
    the first sample of the process reads 0.0.
    """
    cpu_percent = psutil.cpu_percent(interval=None)
    memory = psutil.virtual_memory()

    frequency = 0.0
    try:
        freq = psutil.cpu_freq()
        if freq is not None:
            frequency = float(freq.current)
    except (OSError, NotImplementedError) as e:
        logger.debug(f"CPU frequency unavailable: {e}")

    uptime = max(0, int(time.time() - psutil.boot_time()))

    return HostMetricSnapshot(
        host_id=host_id,
        hostname=hostname,
        timestamp=timestamp,
        cpu_percent=float(cpu_percent),
        cpu_frequency_mhz=frequency,
        memory_bytes=int(memory.used),
        memory_percent=float(memory.percent),
        uptime_seconds=uptime,
        is_up=True,
    )


def derive_remote_host(
    host_id: str,
    hostname: str,
    timestamp: datetime,
    containers: Iterable[ContainerMetricSnapshot],
    engine_info: Dict[str, Any],
) -> HostMetricSnapshot:
    """Approximate host metrics for a remote engine from its containers.

    CPU is the container total spread over the engine's CPUs and memory
    is the container total against the engine's ``MemTotal``.
    """
    snapshots = list(containers)
    ncpu = int(engine_info.get("NCPU") or 1)
    mem_total = int(engine_info.get("MemTotal") or 0)

    cpu_total = sum(s.cpu_percent for s in snapshots)
    memory_total = sum(s.memory_bytes for s in snapshots)

    return HostMetricSnapshot(
        host_id=host_id,
        hostname=engine_info.get("Name") or hostname,
        timestamp=timestamp,
        cpu_percent=min(100.0, cpu_total / max(ncpu, 1)),
        cpu_frequency_mhz=0.0,
        memory_bytes=memory_total,
        memory_percent=(memory_total / mem_total * 100.0) if mem_total > 0 else 0.0,
        uptime_seconds=0,
        is_up=True,
    )


def host_down(host_id: str, hostname: str, timestamp: datetime) -> HostMetricSnapshot:
    """Snapshot recorded for a host whose runtime did not answer."""
    return HostMetricSnapshot(
        host_id=host_id,
        hostname=hostname,
        timestamp=timestamp,
        cpu_percent=0.0,
        cpu_frequency_mhz=0.0,
        memory_bytes=0,
        memory_percent=0.0,
        uptime_seconds=0,
        is_up=False,
    )
