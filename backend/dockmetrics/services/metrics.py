"""Prometheus metrics for dockmetrics."""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from dockmetrics import __version__
from dockmetrics.services.metrics_store import MetricsStore

app_info = Info("dockmetrics_app", "dockmetrics application information")
app_info.info({"version": __version__, "name": "dockmetrics"})

# Collection loop
collection_ticks_total = Counter(
    "dockmetrics_collection_ticks_total", "Collection ticks completed"
)
collection_duration = Histogram(
    "dockmetrics_collection_duration_seconds",
    "Duration of one collection tick across all hosts",
    buckets=[0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)
host_poll_failures_total = Counter(
    "dockmetrics_host_poll_failures_total", "Host polls that failed", ["host"]
)
container_poll_failures_total = Counter(
    "dockmetrics_container_poll_failures_total",
    "Container snapshots that could not be taken",
    ["host"],
)
hosts_up = Gauge("dockmetrics_host_up", "1 if the host answered the last poll", ["host"])

# Store
store_series = Gauge("dockmetrics_store_series", "Container series held in memory")
store_points = Gauge("dockmetrics_store_points", "Container snapshots held in memory")
store_host_points = Gauge("dockmetrics_store_host_points", "Host snapshots held in memory")
store_trimmed_total = Counter(
    "dockmetrics_store_trimmed_points_total", "Snapshots removed by retention trims"
)

# Control and proxy
control_actions_total = Counter(
    "dockmetrics_control_actions_total", "Container control actions", ["action", "result"]
)
proxy_requests_total = Counter(
    "dockmetrics_proxy_requests_total", "Proxied requests", ["method", "outcome"]
)


def collect_store_metrics(store: MetricsStore) -> None:
    """Refresh store gauges from current store counts."""
    stats = store.stats()
    store_series.set(stats.series_count)
    store_points.set(stats.total_points)
    store_host_points.set(stats.host_points)


def get_metrics() -> bytes:
    """Get Prometheus metrics in text format."""
    return generate_latest()


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
