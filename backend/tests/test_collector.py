"""Tests for the collection loop (dockmetrics/services/collector.py).

Tests:
- Per-host partial-failure isolation
- Skipping containers that vanish mid-tick
- Host snapshots for local, remote and down hosts
- Startup wait for the local runtime
- Trim job and removed-host eviction
- Scheduler lifecycle
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from dockmetrics.exceptions import ContainerNotFound, RuntimeUnavailable
from dockmetrics.models.container import ContainerInfo
from dockmetrics.models.host import HostConfig, HostState
from dockmetrics.services.collector import MetricsCollector
from dockmetrics.services.docker_pool import DockerClientPool
from dockmetrics.services.docker_stats import DockerStatsService
from dockmetrics.services.host_registry import HostRegistry

LOCAL = HostConfig(id="local", name="test-host", url="unix:///var/run/docker.sock")


def _container(cid: str, name: str) -> ContainerInfo:
    return ContainerInfo(id=cid, name=name, state="running", is_running=True, is_paused=False)


@pytest.fixture
def registry(tmp_path):
    return HostRegistry(tmp_path / "hosts.json", LOCAL)


@pytest.fixture
def collector(store, tracker, registry, docker_factory):
    pool = DockerClientPool(factory=docker_factory)
    return MetricsCollector(
        store=store,
        tracker=tracker,
        registry=registry,
        pool=pool,
        poll_interval=3600,
        trim_interval=3600,
        startup_retry=0,
    )


@pytest.fixture(autouse=True)
def local_host_sample(make_host_snapshot):
    with patch(
        "dockmetrics.services.collector.sample_local_host",
        side_effect=lambda host_id, hostname, ts: make_host_snapshot(
            host_id=host_id, hostname=hostname, timestamp=ts
        ),
    ) as mock:
        yield mock


class TestCollectOnce:
    """Test suite for a single collection tick."""

    async def test_collects_all_containers_on_local_host(
        self, collector, store, tracker, local_docker, make_snapshot
    ):
        local_docker.list_containers.return_value = [_container("a", "web"), _container("b", "db")]
        local_docker.get_container_snapshot.side_effect = lambda cid, name: make_snapshot(
            container_id=cid, container_name=name
        )

        stats = await collector.collect_once()

        assert stats == {"hosts": 1, "failed": 0, "snapshots": 2}
        assert store.get_known_container_ids() == ["a", "b"]
        assert tracker.state("local") == HostState.HEALTHY
        (host_snapshot,) = store.query_hosts()
        assert host_snapshot.is_up is True
        local_docker.list_containers.assert_awaited_once_with(all=True)

    async def test_vanished_container_is_skipped(
        self, collector, store, tracker, local_docker, make_snapshot
    ):
        local_docker.list_containers.return_value = [_container("a", "web"), _container("b", "db")]

        async def snapshot(cid, name):
            if cid == "b":
                raise ContainerNotFound(cid, "local")
            return make_snapshot(container_id=cid, container_name=name)

        local_docker.get_container_snapshot.side_effect = snapshot

        stats = await collector.collect_once()

        assert stats["snapshots"] == 1
        assert store.get_known_container_ids() == ["a"]
        assert tracker.state("local") == HostState.HEALTHY

    async def test_failing_host_does_not_affect_others(
        self, collector, registry, store, tracker, docker_services, local_docker, make_snapshot
    ):
        remote = registry.add("remote", "tcp://10.0.0.9:2375")
        healthy_remote = registry.add("pi", "tcp://10.0.0.7:2375")
        local_docker.list_containers.return_value = [_container("a", "web")]
        local_docker.get_container_snapshot.side_effect = lambda cid, name: make_snapshot(
            container_id=cid
        )

        # Resolve pooled services, then configure their behavior
        remote_service = collector.pool.get(remote)
        remote_service.ping.side_effect = RuntimeUnavailable(remote.id, "connection refused")
        pi_service = collector.pool.get(healthy_remote)
        pi_service.list_containers.return_value = [_container("p", "pihole")]
        pi_service.get_container_snapshot.side_effect = lambda cid, name: make_snapshot(
            host_id=healthy_remote.id, container_id=cid, cpu_percent=40.0
        )

        stats = await collector.collect_once()

        assert stats == {"hosts": 3, "failed": 1, "snapshots": 2}
        assert tracker.state("local") == HostState.HEALTHY
        assert tracker.state(healthy_remote.id) == HostState.HEALTHY
        assert tracker.state(remote.id) == HostState.UNHEALTHY
        assert tracker.get(remote.id).last_error == "connection refused"
        assert store.container_count_by_host() == {"local": 1, healthy_remote.id: 1}

        hosts = {s.host_id: s for s in store.query_hosts()}
        assert hosts[remote.id].is_up is False
        assert hosts[healthy_remote.id].is_up is True
        # 40% across 4 CPUs from the mocked engine info
        assert hosts[healthy_remote.id].cpu_percent == pytest.approx(10.0)

    async def test_malformed_stats_skip_only_that_container(self, store, tracker, registry):
        docker_client = MagicMock()
        docker_client.api.version.return_value = {"Version": "24.0.7"}
        docker_client.api.containers.return_value = [
            {"Id": "good", "Names": ["/good"], "State": "running"},
            {"Id": "bad", "Names": ["/bad"], "State": "running"},
        ]
        docker_client.api.inspect_container.side_effect = lambda cid: {
            "Id": cid,
            "Name": f"/{cid}",
            "State": {"Status": "running", "StartedAt": "2024-01-01T00:00:00Z"},
        }
        rx_bytes = {"good": 1000, "bad": "n/a"}
        docker_client.api.stats.side_effect = lambda cid, stream: {
            "networks": {"eth0": {"rx_bytes": rx_bytes[cid], "tx_bytes": 0}}
        }
        pool = DockerClientPool(
            factory=lambda **kwargs: DockerStatsService(
                **kwargs, client_factory=lambda **_: docker_client
            )
        )
        collector = MetricsCollector(
            store=store, tracker=tracker, registry=registry, pool=pool, startup_retry=0
        )

        stats = await collector.collect_once()

        assert stats == {"hosts": 1, "failed": 0, "snapshots": 1}
        assert store.get_known_container_ids() == ["good"]
        assert tracker.state("local") == HostState.HEALTHY
        (host_snapshot,) = store.query_hosts()
        assert host_snapshot.is_up is True

    async def test_unexpected_error_is_isolated(self, collector, tracker, local_docker):
        local_docker.list_containers.side_effect = KeyError("Id")

        stats = await collector.collect_once()

        assert stats["failed"] == 1
        assert tracker.state("local") == HostState.UNHEALTHY

    async def test_disabled_hosts_are_not_polled(self, collector, registry, docker_services, local_docker):
        host = registry.add("off", "tcp://10.0.0.9:2375", enabled=False)

        stats = await collector.collect_once()

        assert stats["hosts"] == 1
        assert host.id not in docker_services

    async def test_down_host_retried_next_tick(self, collector, tracker, local_docker):
        local_docker.ping.side_effect = [RuntimeUnavailable("local", "refused"), None]

        await collector.collect_once()
        assert tracker.state("local") == HostState.UNHEALTHY

        await collector.collect_once()
        assert tracker.state("local") == HostState.HEALTHY


class TestStartup:
    """Test suite for startup ordering and lifecycle."""

    async def test_waits_until_local_runtime_reachable(self, collector, local_docker):
        local_docker.check_connection.side_effect = [False, False, True]

        await collector.wait_for_runtime()

        assert local_docker.check_connection.await_count == 3

    async def test_start_schedules_jobs_after_runtime_ready(self, collector, local_docker):
        await collector.start()
        await collector._startup_task

        try:
            assert collector.is_running
            job_ids = {job.id for job in collector.scheduler.get_jobs()}
            assert job_ids == {"metrics_collection", "metrics_trim"}
        finally:
            await collector.stop()

        assert collector.scheduler is None
        local_docker.close.assert_called()

    async def test_stop_cancels_pending_startup(self, collector, local_docker):
        local_docker.check_connection.return_value = False
        collector.startup_retry = 3600

        await collector.start()
        await collector.stop()

        assert collector.scheduler is None
        assert not collector.is_running


class TestTrim:
    """Test suite for the trim job."""

    async def test_trim_applies_retention(self, collector, store, make_snapshot):
        store.append(make_snapshot(timestamp=datetime.now(UTC) - timedelta(days=2)))
        store.append(make_snapshot(timestamp=datetime.now(UTC)))

        removed = await collector.trim_once()

        assert removed == 1
        assert store.stats().total_points == 1

    async def test_trim_evicts_removed_hosts(self, collector, store, registry, make_snapshot):
        store.append(make_snapshot(host_id="local", container_id="a"))
        store.append(make_snapshot(host_id="deleted", container_id="b"))

        await collector.trim_once()

        assert store.get_known_container_ids() == ["a"]
