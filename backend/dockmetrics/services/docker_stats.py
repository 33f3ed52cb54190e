"""Docker stats service for container metrics and lifecycle control."""

import asyncio
import logging
import re
import threading
from datetime import UTC, datetime
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

import docker
from docker.errors import APIError, DockerException, NotFound

from dockmetrics.exceptions import ContainerNotFound, RuntimeUnavailable
from dockmetrics.models.container import ContainerInfo, ContainerStatus, ControlOutcome
from dockmetrics.models.snapshot import ContainerMetricSnapshot
from dockmetrics.services.pressure_reader import NO_PRESSURE, ContainerPressure, PressureReader

logger = logging.getLogger(__name__)

T = TypeVar("T")

STOP_TIMEOUT_SECONDS = 10

_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_docker_time(value: Optional[str]) -> Optional[datetime]:
    """Parse a Docker RFC 3339 timestamp (nanosecond precision).

    Returns None for empty values and for Docker's zero time
    ``0001-01-01T00:00:00Z``, which marks a container that never started.
    """
    if not value or value.startswith("0001-01-01"):
        return None
    try:
        # fromisoformat accepts at most microseconds
        trimmed = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6], value, count=1)
        parsed = datetime.fromisoformat(trimmed.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable Docker timestamp: {value}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def map_state(state: Optional[str]) -> Tuple[bool, bool]:
    """Map a Docker state string to (is_running, is_paused).

    Paused containers are still running. Unknown and transitional states
    (created, restarting, removing, exited, dead) are not running.
    """
    normalized = (state or "").strip().lower()
    if normalized == "running":
        return True, False
    if normalized == "paused":
        return True, True
    return False, False


def calculate_cpu_percent(
    container_total: int,
    pre_container_total: int,
    system_total: int,
    pre_system_total: int,
    online_cpus: int,
) -> float:
    """CPU percent from two cumulative counter samples.

    Formula: (container delta / system delta) * online CPUs * 100.
    Returns 0.0 when the system counter did not advance or the container
    counter went backwards (container restart between samples).
    """
    cpu_delta = container_total - pre_container_total
    system_delta = system_total - pre_system_total
    if system_delta <= 0 or cpu_delta < 0:
        return 0.0
    return (cpu_delta / system_delta) * max(online_cpus, 1) * 100.0


def cpu_percent_from_stats(cpu_stats: Dict[str, Any], precpu_stats: Dict[str, Any]) -> float:
    """Apply ``calculate_cpu_percent`` to a raw one-shot stats payload."""
    try:
        cpu_usage = cpu_stats.get("cpu_usage") or {}
        pre_cpu_usage = precpu_stats.get("cpu_usage") or {}

        online_cpus = cpu_stats.get("online_cpus")
        if not online_cpus:
            percpu = cpu_usage.get("percpu_usage")
            online_cpus = len(percpu) if isinstance(percpu, list) and percpu else 1

        return calculate_cpu_percent(
            int(cpu_usage.get("total_usage") or 0),
            int(pre_cpu_usage.get("total_usage") or 0),
            int(cpu_stats.get("system_cpu_usage") or 0),
            int(precpu_stats.get("system_cpu_usage") or 0),
            int(online_cpus),
        )
    except (TypeError, ValueError, AttributeError) as e:
        logger.debug(f"Invalid CPU stats: {e}")
        return 0.0


def sum_network_bytes(stats: Dict[str, Any]) -> Tuple[int, int]:
    """Sum RX/TX bytes across every reported network interface."""
    rx_total = 0
    tx_total = 0
    for iface in (stats.get("networks") or {}).values():
        rx_total += int(iface.get("rx_bytes") or 0)
        tx_total += int(iface.get("tx_bytes") or 0)
    return rx_total, tx_total


def sum_block_io_bytes(stats: Dict[str, Any]) -> Tuple[int, int]:
    """Sum read/write bytes across every block I/O entry."""
    read_total = 0
    write_total = 0
    entries = (stats.get("blkio_stats") or {}).get("io_service_bytes_recursive") or []
    for entry in entries:
        op = str(entry.get("op", "")).lower()
        value = int(entry.get("value") or 0)
        if op == "read":
            read_total += value
        elif op == "write":
            write_total += value
    return read_total, write_total


def memory_usage(stats: Dict[str, Any]) -> Tuple[int, float]:
    """Return (usage bytes, percent of limit)."""
    mem_stats = stats.get("memory_stats") or {}
    usage = int(mem_stats.get("usage") or 0)
    limit = int(mem_stats.get("limit") or 0)
    percent = (usage / limit * 100.0) if limit > 0 else 0.0
    return usage, percent


def _pressure_pair(section: Dict[str, Any]) -> Tuple[Optional[float], Optional[float]]:
    """Extract (some, full) avg10 values from a stats ``pressure`` object."""
    pressure = section.get("pressure")
    if not isinstance(pressure, dict):
        return None, None

    def _value(raw: Any) -> Optional[float]:
        if isinstance(raw, dict):
            raw = raw.get("avg10")
        try:
            return float(raw) if raw is not None else None
        except (TypeError, ValueError):
            return None

    return _value(pressure.get("some")), _value(pressure.get("full"))


def pressure_from_stats(stats: Dict[str, Any]) -> Dict[str, Optional[float]]:
    """Pressure fields reported inline by the engine (remote hosts)."""
    cpu_some, cpu_full = _pressure_pair(stats.get("cpu_stats") or {})
    mem_some, mem_full = _pressure_pair(stats.get("memory_stats") or {})
    io_some, io_full = _pressure_pair(stats.get("blkio_stats") or {})
    return {
        "cpu_pressure_some": cpu_some,
        "cpu_pressure_full": cpu_full,
        "memory_pressure_some": mem_some,
        "memory_pressure_full": mem_full,
        "io_pressure_some": io_some,
        "io_pressure_full": io_full,
    }


def pressure_fields(pressure: ContainerPressure) -> Dict[str, Optional[float]]:
    """Flatten PSI readings to the avg10 snapshot fields."""
    return {
        "cpu_pressure_some": pressure.cpu.some10 if pressure.cpu else None,
        "cpu_pressure_full": pressure.cpu.full10 if pressure.cpu else None,
        "memory_pressure_some": pressure.memory.some10 if pressure.memory else None,
        "memory_pressure_full": pressure.memory.full10 if pressure.memory else None,
        "io_pressure_some": pressure.io.some10 if pressure.io else None,
        "io_pressure_full": pressure.io.full10 if pressure.io else None,
    }


def _strip_name(name: Optional[str]) -> str:
    return (name or "").lstrip("/")


class DockerStatsService:
    """Reads metrics from, and controls containers on, one Docker host.

    Wraps the Docker SDK low-level API. Every SDK call is blocking and runs
    in a worker thread. Connection failures surface as
    ``RuntimeUnavailable``, missing containers as ``ContainerNotFound``.
    """

    def __init__(
        self,
        host_id: str,
        host_name: str,
        base_url: str,
        timeout: int = 30,
        pressure_reader: Optional[PressureReader] = None,
        client_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.host_id = host_id
        self.host_name = host_name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.pressure_reader = pressure_reader
        self.docker_version: Optional[str] = None
        self._client_factory = client_factory or docker.DockerClient
        self._client: Any = None
        self._client_lock = threading.Lock()

    def _api(self) -> Any:
        # Called from several worker threads at once during a tick
        with self._client_lock:
            if self._client is None:
                self._client = self._client_factory(base_url=self.base_url, timeout=self.timeout)
            return self._client.api

    async def _call(self, fn: Callable[..., T], *args: Any, container_id: Optional[str] = None) -> T:
        """Run a blocking SDK call in a thread and normalize its errors."""
        try:
            return await asyncio.to_thread(fn, *args)
        except NotFound:
            raise ContainerNotFound(container_id or "", self.host_id)
        except APIError:
            raise
        except (DockerException, OSError) as e:
            self._reset_client()
            raise RuntimeUnavailable(self.host_id, str(e)) from e

    def _reset_client(self) -> None:
        with self._client_lock:
            client, self._client = self._client, None
        if client is not None:
            try:
                client.close()
            except (DockerException, OSError) as e:
                logger.debug(f"Error closing Docker client for {self.host_id}: {e}")

    def close(self) -> None:
        """Release the underlying HTTP connection pool."""
        self._reset_client()

    async def ping(self) -> None:
        """Verify the runtime answers, raising RuntimeUnavailable otherwise."""

        def _ping() -> None:
            api = self._api()
            api.ping()
            if self.docker_version is None:
                self.docker_version = api.version().get("Version")

        try:
            await self._call(_ping)
        except APIError as e:
            raise RuntimeUnavailable(self.host_id, str(e)) from e

    async def check_connection(self) -> bool:
        """Return True if the runtime is reachable."""
        try:
            await self.ping()
            return True
        except RuntimeUnavailable as e:
            logger.warning(f"Failed to connect to Docker on {self.host_name}: {e.detail}")
            return False

    async def get_info(self) -> Dict[str, Any]:
        """Engine-wide info (NCPU, MemTotal, ...)."""
        try:
            return await self._call(lambda: self._api().info())
        except APIError as e:
            raise RuntimeUnavailable(self.host_id, str(e)) from e

    async def list_containers(self, all: bool = False) -> list[ContainerInfo]:
        """Enumerate containers, optionally including stopped ones."""
        try:
            raw = await self._call(lambda: self._api().containers(all=all))
        except APIError as e:
            raise RuntimeUnavailable(self.host_id, str(e)) from e

        containers = []
        for item in raw or []:
            names = item.get("Names") or []
            state = item.get("State") or ""
            is_running, is_paused = map_state(state)
            containers.append(
                ContainerInfo(
                    id=item.get("Id", ""),
                    name=_strip_name(names[0] if names else ""),
                    state=state,
                    is_running=is_running,
                    is_paused=is_paused,
                    created=int(item.get("Created") or 0),
                )
            )
        return containers

    async def get_container_status(self, container_id: str) -> ContainerStatus:
        """Real-time status from an inspect call."""
        try:
            attrs = await self._call(
                lambda: self._api().inspect_container(container_id), container_id=container_id
            )
        except APIError as e:
            raise RuntimeUnavailable(self.host_id, str(e)) from e

        state = attrs.get("State") or {}
        return ContainerStatus(
            id=attrs.get("Id", container_id),
            name=_strip_name(attrs.get("Name")),
            status=state.get("Status", "unknown"),
            running=bool(state.get("Running", False)),
            paused=bool(state.get("Paused", False)),
        )

    def _read_pressure(self, container_id: str, stats: Dict[str, Any]) -> Dict[str, Optional[float]]:
        if self.pressure_reader is not None:
            pressure = self.pressure_reader.read_container(container_id)
            if pressure != NO_PRESSURE:
                return pressure_fields(pressure)
        return pressure_from_stats(stats)

    def _build_snapshot(self, container_id: str, fallback_name: str) -> ContainerMetricSnapshot:
        api = self._api()
        attrs = api.inspect_container(container_id)
        state = attrs.get("State") or {}
        is_running, is_paused = map_state(state.get("Status"))
        now = datetime.now(UTC)

        started_at = parse_docker_time(state.get("StartedAt"))
        uptime = 0
        if is_running and not is_paused and started_at is not None:
            uptime = max(0, int((now - started_at).total_seconds()))

        # The stats endpoint can hang for paused containers
        stats: Dict[str, Any] = {}
        if is_running and not is_paused:
            stats = api.stats(container_id, stream=False) or {}

        cpu_percent = cpu_percent_from_stats(
            stats.get("cpu_stats") or {}, stats.get("precpu_stats") or {}
        )
        memory_bytes, memory_percent = memory_usage(stats)
        rx_bytes, tx_bytes = sum_network_bytes(stats)
        read_bytes, write_bytes = sum_block_io_bytes(stats)

        return ContainerMetricSnapshot(
            host_id=self.host_id,
            host_name=self.host_name,
            container_id=attrs.get("Id", container_id),
            container_name=_strip_name(attrs.get("Name")) or fallback_name,
            timestamp=now,
            cpu_percent=cpu_percent,
            memory_bytes=memory_bytes,
            memory_percent=memory_percent,
            network_rx_bytes=rx_bytes,
            network_tx_bytes=tx_bytes,
            disk_read_bytes=read_bytes,
            disk_write_bytes=write_bytes,
            uptime_seconds=uptime,
            is_running=is_running,
            is_paused=is_paused,
            **self._read_pressure(container_id, stats),
        )

    async def get_container_snapshot(
        self, container_id: str, container_name: str = ""
    ) -> ContainerMetricSnapshot:
        """Fetch stats and state for one container and build a snapshot.

        A container that vanished mid-call, or whose payload cannot be
        parsed, raises ``ContainerNotFound`` so the caller skips it.
        """
        try:
            return await self._call(
                self._build_snapshot, container_id, container_name, container_id=container_id
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.debug(f"Malformed stats for {container_id} on {self.host_id}, skipping: {e}")
            raise ContainerNotFound(container_id, self.host_id) from e
        except APIError as e:
            # A container removed mid-call can answer 409/500 instead of 404
            logger.debug(f"Stats call failed for {container_id} on {self.host_id}: {e}")
            raise ContainerNotFound(container_id, self.host_id) from e

    async def _control(self, action: str, container_id: str, fn: Callable[[], Any]) -> ControlOutcome:
        try:
            await self._call(fn, container_id=container_id)
        except APIError as e:
            detail = e.explanation if getattr(e, "explanation", None) else str(e)
            if isinstance(detail, bytes):
                detail = detail.decode("utf-8", errors="replace")
            logger.info(f"Docker refused to {action} {container_id} on {self.host_id}: {detail}")
            return ControlOutcome(success=False, error=f"Failed to {action} container: {detail}")

        logger.info(f"Container {container_id} {action} on {self.host_name} succeeded")
        return ControlOutcome(success=True)

    async def start_container(self, container_id: str) -> ControlOutcome:
        return await self._control("start", container_id, lambda: self._api().start(container_id))

    async def stop_container(
        self, container_id: str, timeout: int = STOP_TIMEOUT_SECONDS
    ) -> ControlOutcome:
        return await self._control(
            "stop", container_id, lambda: self._api().stop(container_id, timeout=timeout)
        )

    async def restart_container(
        self, container_id: str, timeout: int = STOP_TIMEOUT_SECONDS
    ) -> ControlOutcome:
        return await self._control(
            "restart", container_id, lambda: self._api().restart(container_id, timeout=timeout)
        )

    async def pause_container(self, container_id: str) -> ControlOutcome:
        return await self._control("pause", container_id, lambda: self._api().pause(container_id))

    async def unpause_container(self, container_id: str) -> ControlOutcome:
        return await self._control(
            "unpause", container_id, lambda: self._api().unpause(container_id)
        )
