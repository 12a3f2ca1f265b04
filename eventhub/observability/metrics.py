"""Prometheus metrics definitions for the EventHub job and cache subsystem.

Defines counters, gauges, and histograms for monitoring:
- Media cache hits, misses, evictions and size
- Background job lifecycle
- Batch dispatch throughput and latency
- Maintenance scheduler status

Usage:
    from eventhub.observability.metrics import CACHE_OPERATIONS

    CACHE_OPERATIONS.labels(operation="hit").inc()

Metrics are exposed via the /metrics endpoint of the API server.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Custom registry to avoid conflicts with the default registry
REGISTRY = CollectorRegistry(auto_describe=True)

# =============================================================================
# COUNTERS - Monotonically increasing values
# =============================================================================

CACHE_OPERATIONS = Counter(
    name="eventhub_media_cache_operations_total",
    documentation="Total media cache operations",
    labelnames=["operation"],  # hit, miss, set, reject, evict, invalidate
    registry=REGISTRY,
)

CACHE_CORRUPTIONS = Counter(
    name="eventhub_media_cache_corruptions_total",
    documentation="Corrupted media cache entries removed by the health check",
    registry=REGISTRY,
)

JOBS_CREATED = Counter(
    name="eventhub_jobs_created_total",
    documentation="Total background jobs created",
    labelnames=["job_type"],
    registry=REGISTRY,
)

JOBS_COMPLETED = Counter(
    name="eventhub_jobs_completed_total",
    documentation="Total background jobs completed",
    labelnames=["job_type", "status"],  # completed, partial, failed, cancelled
    registry=REGISTRY,
)

DISPATCH_ITEMS = Counter(
    name="eventhub_dispatch_items_total",
    documentation="Items processed by batch dispatches",
    labelnames=["job_type", "outcome"],  # success, failure
    registry=REGISTRY,
)

# =============================================================================
# GAUGES - Values that can go up and down
# =============================================================================

CACHE_SIZE_BYTES = Gauge(
    name="eventhub_media_cache_size_bytes",
    documentation="Bytes currently held by the media cache",
    registry=REGISTRY,
)

CACHE_ITEMS = Gauge(
    name="eventhub_media_cache_items",
    documentation="Media entries currently held by the media cache",
    registry=REGISTRY,
)

ACTIVE_JOBS = Gauge(
    name="eventhub_active_jobs",
    documentation="Background jobs not yet completed",
    registry=REGISTRY,
)

SCHEDULER_JOBS = Gauge(
    name="eventhub_scheduler_jobs",
    documentation="Number of scheduled maintenance jobs",
    labelnames=["status"],  # pending, scheduled
    registry=REGISTRY,
)

# =============================================================================
# HISTOGRAMS - Distribution of values
# =============================================================================

BATCH_DURATION = Histogram(
    name="eventhub_dispatch_batch_duration_seconds",
    documentation="Time to settle one dispatch batch",
    labelnames=["job_type"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1, 2, 5, 10, 30, 60, float("inf")),
    registry=REGISTRY,
)

CACHED_PAYLOAD_BYTES = Histogram(
    name="eventhub_media_cache_payload_bytes",
    documentation="Size distribution of payloads accepted by the media cache",
    buckets=(
        10_000,  # 10KB
        100_000,  # 100KB
        1_000_000,  # 1MB
        5_000_000,  # 5MB
        10_000_000,  # 10MB
        50_000_000,  # 50MB
        float("inf"),
    ),
    registry=REGISTRY,
)


def get_metrics_text() -> bytes:
    """Generate Prometheus metrics in text exposition format."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Content-Type header value for Prometheus metrics responses."""
    return CONTENT_TYPE_LATEST
