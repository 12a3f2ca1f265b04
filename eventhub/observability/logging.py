"""Structured logging for the media cache and background jobs.

Every entry carries the component that wrote it, the correlation ID of
the dispatch or scheduled run it belongs to and any job context bound
with log_context().

Usage:
    from eventhub.observability.logging import configure_logging, get_logger

    configure_logging(level="INFO")

    logger = get_logger("media_cache")
    logger.info("media_cached", name="event42/cover.jpg", size=10240)
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.typing import EventDict, WrappedLogger

from eventhub.observability.context import get_correlation_id

# Third-party loggers that share the process-wide level
_LIBRARY_LOGGERS = ("apscheduler", "uvicorn")


def add_correlation_id_processor(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Stamp the current correlation ID, or "none" outside a run."""
    event_dict["correlation_id"] = get_correlation_id() or "none"
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    add_timestamp: bool = True,
) -> None:
    """Configure structlog and the stdlib loggers of bundled libraries.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON lines for aggregation, console format otherwise
        add_timestamp: Add an ISO timestamp to each entry
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_correlation_id_processor,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors.append(
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(log_level)


def get_logger(component: str, **initial_context: Any) -> Any:
    """Lazy logger bound to a component name.

    Safe to call at import time: configuration applied later by
    configure_logging() still takes effect.
    """
    return structlog.get_logger(component=component, **initial_context)


@contextmanager
def log_context(**context: Any) -> Iterator[None]:
    """Bind context to every entry logged inside the block.

    Example:
        with log_context(job_id=job.id, job_type="email_notification"):
            logger.info("dispatch_started")
    """
    with structlog.contextvars.bound_contextvars(**context):
        yield
