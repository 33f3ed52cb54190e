"""Pydantic schemas for metric snapshots and store diagnostics."""

from datetime import datetime
from typing import Optional

from dockmetrics.schemas.base import CamelModel


class ContainerMetricSchema(CamelModel):
    """Container snapshot response.

    Pressure fields are null when the host cannot report them and are
    never omitted.
    """

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
    is_paused: bool
    cpu_pressure_some: Optional[float] = None
    cpu_pressure_full: Optional[float] = None
    memory_pressure_some: Optional[float] = None
    memory_pressure_full: Optional[float] = None
    io_pressure_some: Optional[float] = None
    io_pressure_full: Optional[float] = None


class HostMetricSchema(CamelModel):
    host_id: str
    hostname: str
    timestamp: datetime
    cpu_percent: float
    cpu_frequency_mhz: float
    memory_bytes: int
    memory_percent: float
    uptime_seconds: int
    is_up: bool


class KnownContainerSchema(CamelModel):
    host_id: str
    host_name: str
    container_id: str
    container_name: str


class StoreStatsSchema(CamelModel):
    """Diagnostic counts for operational visibility."""

    hosts: int
    healthy_hosts: int
    containers: int
    points: int
    series_count: int
    host_points: int
    timestamp: datetime
