"""Метрики Prometheus (локальный registry)."""

from prometheus_client import CollectorRegistry, Counter, Histogram

registry = CollectorRegistry()

requests_total = Counter(
    "requests_total",
    "Total number of provider requests",
    ["provider", "kind", "status"],
    registry=registry,
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Provider request latency in seconds (until headers for streams)",
    ["provider", "kind"],
    registry=registry,
)

errors_total = Counter(
    "errors_total",
    "Canonical errors by kind",
    ["provider", "error_kind"],
    registry=registry,
)

stream_deltas_total = Counter(
    "stream_deltas_total",
    "Stream deltas delivered to callers",
    ["provider"],
    registry=registry,
)
