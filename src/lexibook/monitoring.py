"""Monitoring configuration for the application."""
from prometheus_client import Counter, Histogram, start_http_server

# Sync metrics
sync_operations = Counter(
    "lexibook_sync_operations_total",
    "Total number of sync operations run by the client",
    ["operation", "status"],
)

sync_duration = Histogram(
    "lexibook_sync_duration_seconds",
    "Duration of sync operations in seconds",
    ["operation"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# Review metrics
reviews_recorded = Counter(
    "lexibook_reviews_recorded_total",
    "Total number of review outcomes recorded",
    ["outcome"],
)

# Server metrics
remote_rows_upserted = Counter(
    "lexibook_remote_rows_upserted_total",
    "Total number of key/value rows written by the sync server",
)

error_count = Counter(
    "lexibook_errors_total",
    "Total number of errors returned by the sync server",
    ["error_type"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
