"""
Prometheus metrics for the weather stream.
"""
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

# Application info metric
app_info = Info(
    "weatherstream_app_info",
    "Application information for the weather stream",
)

# Cache metrics
cache_lookup_counter = Counter(
    "weatherstream_cache_lookups_total",
    "Total number of cache lookups",
    ["result"],
)

cache_eviction_counter = Counter(
    "weatherstream_cache_evictions_total",
    "Total number of entries evicted to make room for new keys",
)

cache_size_gauge = Gauge(
    "weatherstream_cache_entries",
    "Current number of cache entries",
    ["cache"],
)

# Provider metrics
provider_request_counter = Counter(
    "weatherstream_provider_requests_total",
    "Total number of weather provider requests",
    ["outcome"],
)

provider_request_duration = Histogram(
    "weatherstream_provider_request_duration_seconds",
    "Weather provider request duration in seconds",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Scheduler metrics
scheduler_tick_counter = Counter(
    "weatherstream_scheduler_ticks_total",
    "Total number of scheduler ticks",
    ["stream"],
)

fetch_retry_counter = Counter(
    "weatherstream_fetch_retries_total",
    "Total number of per-location fetch retries",
)

location_dropped_counter = Counter(
    "weatherstream_locations_dropped_total",
    "Locations that contributed no reading to a tick",
    ["reason"],
)

readings_emitted_counter = Counter(
    "weatherstream_readings_emitted_total",
    "Total number of readings delivered to the output sequence",
)


def set_app_info(version: str, environment: str = "production"):
    """Set application information."""
    app_info.info(
        {"version": version, "environment": environment, "application": "weather-stream"}
    )


def get_metrics() -> bytes:
    """Get all metrics in Prometheus format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
