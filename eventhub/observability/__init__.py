"""Observability module.

Provides:
- Correlation ID context management for job tracing
- Structured logging with context propagation
- Prometheus metrics for the media cache and background jobs

Usage:
    from eventhub.observability import get_logger, correlation_id_context

    with correlation_id_context(job_id):
        get_logger("batch_dispatcher").info("batch_started")
"""

from eventhub.observability.context import (
    clear_correlation_id,
    correlation_id_context,
    get_correlation_id,
    set_correlation_id,
)
from eventhub.observability.logging import (
    add_correlation_id_processor,
    configure_logging,
    get_logger,
    log_context,
)
from eventhub.observability.metrics import (
    ACTIVE_JOBS,
    BATCH_DURATION,
    CACHE_CORRUPTIONS,
    CACHE_ITEMS,
    CACHE_OPERATIONS,
    CACHE_SIZE_BYTES,
    DISPATCH_ITEMS,
    JOBS_COMPLETED,
    JOBS_CREATED,
    get_metrics_content_type,
    get_metrics_text,
)

__all__ = [
    # Context
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
    # Logging
    "get_logger",
    "configure_logging",
    "log_context",
    "add_correlation_id_processor",
    # Metrics
    "CACHE_OPERATIONS",
    "CACHE_CORRUPTIONS",
    "CACHE_SIZE_BYTES",
    "CACHE_ITEMS",
    "JOBS_CREATED",
    "JOBS_COMPLETED",
    "ACTIVE_JOBS",
    "DISPATCH_ITEMS",
    "BATCH_DURATION",
    "get_metrics_text",
    "get_metrics_content_type",
]
