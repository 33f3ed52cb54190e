"""Immutable metric snapshots produced by the collection loop."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class PressureMetrics:
    """Pressure stall information for one resource.

    Values are percentages (0-100) of wall time in which some (or all)
    runnable tasks were stalled on the resource, averaged over 10s, 60s
    and 300s windows. ``full*`` is None when the kernel does not report a
    ``full`` line (CPU pressure on kernels older than 5.13).
    """

    some10: float
    some60: float
    some300: float
    full10: Optional[float] = None
    full60: Optional[float] = None
    full300: Optional[float] = None


@dataclass(frozen=True)
class ContainerMetricSnapshot:
    """One measurement of a container on a host at a poll tick."""

    host_id: str
    host_name: str
    container_id: str
    container_name: str
    timestamp: datetime
    cpu_percent: float
    memory_bytes: int
    memory_percent: float
    network_rx_bytes: int
    network_tx_bytes: int
    disk_read_bytes: int
    disk_write_bytes: int
    uptime_seconds: int
    is_running: bool
    is_paused: bool = False
    cpu_pressure_some: Optional[float] = None
    cpu_pressure_full: Optional[float] = None
    memory_pressure_some: Optional[float] = None
    memory_pressure_full: Optional[float] = None
    io_pressure_some: Optional[float] = None
    io_pressure_full: Optional[float] = None


@dataclass(frozen=True)
class HostMetricSnapshot:
    """One measurement of a host at a poll tick."""

    host_id: str
    hostname: str
    timestamp: datetime
    cpu_percent: float
    cpu_frequency_mhz: float
    memory_bytes: int
    memory_percent: float
    uptime_seconds: int
    is_up: bool
