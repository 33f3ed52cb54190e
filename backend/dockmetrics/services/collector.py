"""Background collection loop.

Polls every enabled host on a fixed interval, appends container and host
snapshots to the metrics store and records per-host health. Hosts are
polled concurrently and a failing host never delays the others.
"""

import asyncio
import logging
import time
from datetime import UTC, datetime, timedelta
from typing import Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from dockmetrics.exceptions import ContainerNotFound, HostNotFound, RuntimeUnavailable
from dockmetrics.models.container import ContainerInfo
from dockmetrics.models.host import HostConfig
from dockmetrics.models.snapshot import ContainerMetricSnapshot
from dockmetrics.services import metrics
from dockmetrics.services.docker_pool import DockerClientPool, is_local_url
from dockmetrics.services.docker_stats import DockerStatsService
from dockmetrics.services.host_health import HostHealthTracker
from dockmetrics.services.host_metrics import derive_remote_host, host_down, sample_local_host
from dockmetrics.services.host_registry import HostRegistry
from dockmetrics.services.metrics_store import MetricsStore
from dockmetrics.utils.error_handling import log_and_continue

logger = logging.getLogger(__name__)

# Upper bound on concurrent stats calls per host
CONTAINER_CONCURRENCY = 8


class MetricsCollector:
    """Drives periodic collection across all enabled hosts."""

    def __init__(
        self,
        store: MetricsStore,
        tracker: HostHealthTracker,
        registry: HostRegistry,
        pool: DockerClientPool,
        poll_interval: int = 10,
        trim_interval: int = 300,
        retention: Optional[timedelta] = None,
        startup_retry: int = 5,
    ) -> None:
        self.store = store
        self.tracker = tracker
        self.registry = registry
        self.pool = pool
        self.poll_interval = poll_interval
        self.trim_interval = trim_interval
        self.retention = retention
        self.startup_retry = startup_retry
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._startup_task: Optional[asyncio.Task] = None
        self._last_tick: Optional[datetime] = None

    @property
    def last_tick(self) -> Optional[datetime]:
        return self._last_tick

    @property
    def is_running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    async def start(self) -> None:
        """Wait for the local runtime in the background, then schedule jobs."""
        if self._startup_task is not None:
            return
        self._startup_task = asyncio.create_task(self._start_when_ready())

    async def _start_when_ready(self) -> None:
        try:
            await self.wait_for_runtime()
        except asyncio.CancelledError:
            logger.info("Collector startup cancelled")
            raise

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.collect_once,
            IntervalTrigger(seconds=self.poll_interval),
            id="metrics_collection",
            name="Container Metrics Collection",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(UTC),
        )
        self.scheduler.add_job(
            self.trim_once,
            IntervalTrigger(seconds=self.trim_interval),
            id="metrics_trim",
            name="Metrics Retention Trim",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(
            f"Metrics collector started: poll every {self.poll_interval}s, "
            f"trim every {self.trim_interval}s"
        )

    async def wait_for_runtime(self) -> None:
        """Block until the default local host answers a ping."""
        host = self.registry.default_host
        try:
            host = self.registry.get(host.id)
        except HostNotFound:
            logger.info(f"Default host {host.id} is not registered, probing its endpoint anyway")

        service = self.pool.get(host)
        attempt = 0
        while True:
            attempt += 1
            if await service.check_connection():
                logger.info(f"Docker runtime on {host.name} reachable after {attempt} attempt(s)")
                return
            logger.warning(
                f"Docker runtime on {host.name} not reachable, retrying in {self.startup_retry}s"
            )
            await asyncio.sleep(self.startup_retry)

    async def stop(self) -> None:
        """Cancel the startup waiter, stop the scheduler and close clients."""
        if self._startup_task is not None and not self._startup_task.done():
            self._startup_task.cancel()
            try:
                await self._startup_task
            except asyncio.CancelledError:
                pass
        self._startup_task = None

        if self.scheduler:
            try:
                self.scheduler.shutdown(wait=False)
                await asyncio.sleep(0)
                logger.info("Metrics collector stopped")
            except RuntimeError as e:
                logger.error(f"Scheduler shutdown error: {e}")
            self.scheduler = None

        self.pool.close_all()

    async def collect_once(self) -> Dict[str, int]:
        """Run one collection tick across every enabled host.

        Returns:
            Counts of hosts polled, hosts failed and snapshots stored
        """
        started = time.monotonic()
        tick = datetime.now(UTC)
        hosts = self.registry.enabled()

        results = await asyncio.gather(
            *(self._collect_host(host, tick) for host in hosts), return_exceptions=True
        )

        stats = {"hosts": len(hosts), "failed": 0, "snapshots": 0}
        for host, result in zip(hosts, results):
            if isinstance(result, BaseException):
                # _collect_host handles expected failures itself
                log_and_continue(
                    logger, result, f"Unexpected error collecting host {host.id}", log_level="error"
                )
                self.tracker.record_failure(host.id, str(result))
                stats["failed"] += 1
            elif result is None:
                stats["failed"] += 1
            else:
                stats["snapshots"] += result

        self._last_tick = tick
        duration = time.monotonic() - started
        metrics.collection_ticks_total.inc()
        metrics.collection_duration.observe(duration)
        metrics.collect_store_metrics(self.store)
        logger.debug(
            f"Collection tick finished in {duration:.2f}s: {stats['snapshots']} snapshots "
            f"from {stats['hosts'] - stats['failed']}/{stats['hosts']} hosts"
        )
        return stats

    async def _collect_host(self, host: HostConfig, tick: datetime) -> Optional[int]:
        """Poll one host. Returns snapshots stored, or None if the host is down."""
        service = self.pool.get(host)
        try:
            await service.ping()
            containers = await service.list_containers(all=True)
            snapshots = await self._snapshot_containers(service, containers)
            engine_info = {} if is_local_url(host.url) else await service.get_info()
        except RuntimeUnavailable as e:
            self.tracker.record_failure(host.id, e.detail)
            self.store.append_host(host_down(host.id, host.name, tick))
            metrics.host_poll_failures_total.labels(host=host.id).inc()
            metrics.hosts_up.labels(host=host.id).set(0)
            return None

        for snapshot in snapshots:
            self.store.append(snapshot)

        if is_local_url(host.url):
            host_snapshot = await asyncio.to_thread(sample_local_host, host.id, host.name, tick)
        else:
            host_snapshot = derive_remote_host(host.id, host.name, tick, snapshots, engine_info)
        self.store.append_host(host_snapshot)

        self.tracker.record_success(host.id)
        metrics.hosts_up.labels(host=host.id).set(1)
        return len(snapshots)

    async def _snapshot_containers(
        self, service: DockerStatsService, containers: List[ContainerInfo]
    ) -> List[ContainerMetricSnapshot]:
        semaphore = asyncio.Semaphore(CONTAINER_CONCURRENCY)

        async def _one(container: ContainerInfo) -> Optional[ContainerMetricSnapshot]:
            async with semaphore:
                try:
                    return await service.get_container_snapshot(container.id, container.name)
                except ContainerNotFound:
                    logger.debug(f"Container {container.name} skipped on {service.host_id} this tick")
                    metrics.container_poll_failures_total.labels(host=service.host_id).inc()
                    return None

        results = await asyncio.gather(*(_one(c) for c in containers))
        return [snapshot for snapshot in results if snapshot is not None]

    async def trim_once(self) -> int:
        """Apply retention and drop data of hosts removed from the registry."""
        removed = self.store.trim(self.retention)
        self.store.retain_hosts(host.id for host in self.registry.list())
        metrics.store_trimmed_total.inc(removed)
        metrics.collect_store_metrics(self.store)
        if removed:
            logger.info(f"Retention trim removed {removed} snapshots")
        return removed
