"""Thread-safe in-memory store for container and host metric snapshots.

Snapshots are grouped into series: one per (host id, container id) pair
for containers, one per host id for host metrics. Each series carries its
own lock so a write to one container never blocks a read of another. The
key map has a separate lock held only while a series is looked up,
created or evicted.

Trim marks a series as evicted before dropping it from the key map. An
append that raced with the eviction sees the flag under the series lock
and retries against a freshly created series, so no write is lost.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Callable, Dict, Generic, Hashable, Iterable, List, Optional, Tuple, TypeVar

from dockmetrics.models.container import KnownContainer
from dockmetrics.models.snapshot import ContainerMetricSnapshot, HostMetricSnapshot

logger = logging.getLogger(__name__)

DEFAULT_QUERY_WINDOW = timedelta(hours=6)
DEFAULT_RETENTION = timedelta(hours=24)

P = TypeVar("P", ContainerMetricSnapshot, HostMetricSnapshot)
K = TypeVar("K", bound=Hashable)


class _Series(Generic[P]):
    """Append-only list of snapshots guarded by its own lock."""

    __slots__ = ("points", "lock", "evicted")

    def __init__(self) -> None:
        self.points: List[P] = []
        self.lock = threading.Lock()
        self.evicted = False


@dataclass(frozen=True)
class MetricsFilter:
    """Container metrics query.

    Attributes:
        container_ids: Restrict to these container ids (None = all)
        host_ids: Restrict to these host ids (None = all)
        start: Inclusive lower bound (None = now - default window)
        end: Inclusive upper bound (None = now)
        latest: Return at most the newest in-range point per series
        limit: Return at most this many newest in-range points per series
    """

    container_ids: Optional[frozenset[str]] = None
    host_ids: Optional[frozenset[str]] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    latest: bool = False
    limit: Optional[int] = None


@dataclass(frozen=True)
class StoreStats:
    series_count: int
    total_points: int
    host_series_count: int = 0
    host_points: int = 0
    points_by_host: Dict[str, int] = field(default_factory=dict)


class _SeriesMap(Generic[K, P]):
    """Key map of series with eviction-safe append."""

    def __init__(self) -> None:
        self._series: Dict[K, _Series[P]] = {}
        self._lock = threading.Lock()

    def append(self, key: K, point: P) -> None:
        while True:
            with self._lock:
                series = self._series.get(key)
                if series is None:
                    series = _Series()
                    self._series[key] = series
            with series.lock:
                if series.evicted:
                    continue
                series.points.append(point)
                return

    def items(self, predicate: Optional[Callable[[K], bool]] = None) -> List[Tuple[K, _Series[P]]]:
        with self._lock:
            return [
                (key, series)
                for key, series in self._series.items()
                if predicate is None or predicate(key)
            ]

    def keys(self) -> List[K]:
        with self._lock:
            return list(self._series.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._series)

    def evict(self, keys: Iterable[K], only_if_empty: bool) -> int:
        evicted = 0
        with self._lock:
            for key in keys:
                series = self._series.get(key)
                if series is None:
                    continue
                with series.lock:
                    if only_if_empty and series.points:
                        continue
                    series.evicted = True
                    series.points = []
                del self._series[key]
                evicted += 1
        return evicted

    def trim(self, cutoff: datetime) -> Tuple[int, int]:
        """Drop points older than cutoff. Returns (points removed, series evicted)."""
        removed = 0
        empty: List[K] = []
        for key, series in self.items():
            with series.lock:
                before = len(series.points)
                if any(p.timestamp < cutoff for p in series.points):
                    series.points = [p for p in series.points if p.timestamp >= cutoff]
                removed += before - len(series.points)
                if not series.points:
                    empty.append(key)
        return removed, self.evict(empty, only_if_empty=True)


def _in_range(timestamp: datetime, start: datetime, end: datetime) -> bool:
    return start <= timestamp <= end


class MetricsStore:
    """Retention-bounded time-series cache of metric snapshots."""

    def __init__(
        self,
        retention: timedelta = DEFAULT_RETENTION,
        default_window: timedelta = DEFAULT_QUERY_WINDOW,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.retention = retention
        self.default_window = default_window
        self._clock = clock or (lambda: datetime.now(UTC))
        self._containers: _SeriesMap[Tuple[str, str], ContainerMetricSnapshot] = _SeriesMap()
        self._hosts: _SeriesMap[str, HostMetricSnapshot] = _SeriesMap()

    def now(self) -> datetime:
        return self._clock()

    def _window(self, start: Optional[datetime], end: Optional[datetime]) -> Tuple[datetime, datetime]:
        now = self.now()
        return (start or now - self.default_window, end or now)

    # Writes

    def append(self, snapshot: ContainerMetricSnapshot) -> None:
        """Add a container snapshot to its (host, container) series."""
        self._containers.append((snapshot.host_id, snapshot.container_id), snapshot)

    def append_host(self, snapshot: HostMetricSnapshot) -> None:
        """Add a host snapshot to its host series."""
        self._hosts.append(snapshot.host_id, snapshot)

    # Reads

    def query(self, metrics_filter: Optional[MetricsFilter] = None) -> List[ContainerMetricSnapshot]:
        """Return container snapshots matching the filter.

        Plain mode returns every in-range point ordered by timestamp.
        ``latest`` returns the newest in-range point of each series.
        ``limit`` returns up to ``limit`` newest in-range points per series,
        newest first. Unknown ids yield an empty list.
        """
        f = metrics_filter or MetricsFilter()
        start, end = self._window(f.start, f.end)

        def _matches(key: Tuple[str, str]) -> bool:
            host_id, container_id = key
            if f.host_ids is not None and host_id not in f.host_ids:
                return False
            if f.container_ids is not None and container_id not in f.container_ids:
                return False
            return True

        result: List[ContainerMetricSnapshot] = []
        for _, series in sorted(self._containers.items(_matches), key=lambda item: item[0]):
            with series.lock:
                points = [p for p in series.points if _in_range(p.timestamp, start, end)]

            if not points:
                continue
            if f.latest:
                result.append(max(points, key=lambda p: p.timestamp))
            elif f.limit is not None:
                points.sort(key=lambda p: p.timestamp, reverse=True)
                result.extend(points[: max(f.limit, 0)])
            else:
                result.extend(points)

        if f.limit is None or f.latest:
            result.sort(key=lambda p: p.timestamp)
        return result

    def query_hosts(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        host_ids: Optional[frozenset[str]] = None,
        latest: bool = False,
    ) -> List[HostMetricSnapshot]:
        """Return host snapshots in range, ordered by timestamp."""
        start, end = self._window(start, end)
        result: List[HostMetricSnapshot] = []
        for _, series in self._hosts.items(lambda key: host_ids is None or key in host_ids):
            with series.lock:
                points = [p for p in series.points if _in_range(p.timestamp, start, end)]
            if not points:
                continue
            if latest:
                result.append(max(points, key=lambda p: p.timestamp))
            else:
                result.extend(points)
        result.sort(key=lambda p: p.timestamp)
        return result

    def get_known_container_ids(self) -> List[str]:
        """Distinct container ids with at least one stored point."""
        return sorted({container_id for _, container_id in self._containers.keys()})

    def get_known_containers(self, host_id: Optional[str] = None) -> List[KnownContainer]:
        """Container identities taken from the newest point of each series."""
        known = []
        for (series_host, _), series in self._containers.items(
            lambda key: host_id is None or key[0] == host_id
        ):
            with series.lock:
                if not series.points:
                    continue
                newest = max(series.points, key=lambda p: p.timestamp)
            known.append(
                KnownContainer(
                    host_id=newest.host_id,
                    host_name=newest.host_name,
                    container_id=newest.container_id,
                    container_name=newest.container_name,
                )
            )
        known.sort(key=lambda c: (c.host_id, c.container_name, c.container_id))
        return known

    def container_count_by_host(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for host_id, _ in self._containers.keys():
            counts[host_id] = counts.get(host_id, 0) + 1
        return counts

    def stats(self) -> StoreStats:
        """Series and point counts across the store."""
        series_count = 0
        total_points = 0
        points_by_host: Dict[str, int] = {}
        for (host_id, _), series in self._containers.items():
            with series.lock:
                count = len(series.points)
            if count == 0:
                continue
            series_count += 1
            total_points += count
            points_by_host[host_id] = points_by_host.get(host_id, 0) + count

        host_series = 0
        host_points = 0
        for _, series in self._hosts.items():
            with series.lock:
                count = len(series.points)
            if count:
                host_series += 1
                host_points += count

        return StoreStats(
            series_count=series_count,
            total_points=total_points,
            host_series_count=host_series,
            host_points=host_points,
            points_by_host=points_by_host,
        )

    # Maintenance

    def trim(self, retention: Optional[timedelta] = None) -> int:
        """Remove points older than the retention horizon.

        Series left empty are evicted. Safe to run concurrently with
        appends and queries.

        Returns:
            Number of points removed
        """
        cutoff = self.now() - (retention if retention is not None else self.retention)
        removed, evicted = self._containers.trim(cutoff)
        host_removed, host_evicted = self._hosts.trim(cutoff)

        if removed or host_removed:
            logger.debug(
                f"Trimmed {removed} container points ({evicted} series evicted) and "
                f"{host_removed} host points ({host_evicted} series evicted)"
            )
        return removed + host_removed

    def remove_host_data(self, host_id: str) -> int:
        """Drop every series belonging to a host. Returns series removed."""
        keys = [key for key in self._containers.keys() if key[0] == host_id]
        removed = self._containers.evict(keys, only_if_empty=False)
        removed += self._hosts.evict([host_id], only_if_empty=False)
        return removed

    def retain_hosts(self, host_ids: Iterable[str]) -> int:
        """Drop data for every host not in ``host_ids``. Returns series removed."""
        keep = set(host_ids)
        stale_hosts = {host for host, _ in self._containers.keys() if host not in keep}
        stale_hosts.update(host for host in self._hosts.keys() if host not in keep)

        removed = 0
        for host_id in stale_hosts:
            removed += self.remove_host_data(host_id)
        if removed:
            logger.info(f"Evicted {removed} series for removed hosts: {sorted(stale_hosts)}")
        return removed
