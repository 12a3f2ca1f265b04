"""Shared CLI utilities: config loading, error reporting, console output."""

import functools
from pathlib import Path
from typing import Callable, List, TypeVar

import typer

from eventhub.models.config import EventHubConfig
from eventhub.observability.logging import get_logger
from eventhub.services.config_manager import ConfigManager
from eventhub.utils.exceptions import ConfigValidationError, EventHubError

logger = get_logger("cli")

F = TypeVar("F", bound=Callable)

_COLORS = {
    "success": typer.colors.GREEN,
    "error": typer.colors.RED,
    "info": typer.colors.CYAN,
}

DISPATCH_PROFILES = ("email", "notification", "cache_warming")


def display(message: str, kind: str = "info") -> None:
    """Print a colored console line (kind: success, error or info)."""
    typer.secho(message, fg=_COLORS[kind])


def load_config(config_path: Path) -> EventHubConfig:
    """Load configuration, falling back to defaults if the file is absent.

    Raises:
        typer.Exit: If the file exists but does not validate.
    """
    try:
        return ConfigManager(config_path=str(config_path)).load_config()
    except ConfigValidationError as e:
        display(f"Configuration Error: {e}", "error")
        raise typer.Exit(code=1)


def config_summary(config: EventHubConfig) -> List[str]:
    """Human-readable lines describing the effective settings."""
    cache = config.media_cache
    lines = [
        f"Media cache: {cache.max_cache_size_mb} MB budget, "
        f"{cache.max_item_size_mb} MB per item, {cache.max_items} items max",
        f"Job history: {config.jobs.history_size} jobs",
    ]
    for name in DISPATCH_PROFILES:
        profile = getattr(config.dispatch, name)
        lines.append(
            f"Dispatch {name}: batch {profile.batch_size}, "
            f"delay {profile.inter_batch_delay_seconds}s"
        )
    return lines


def handle_errors(func: F) -> F:
    """Turn uncaught errors into a red message and exit code 1.

    Subsystem errors are expected failures and are reported without a
    traceback; anything else is logged with one.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except EventHubError as e:
            logger.error("command_failed", command=func.__name__, error=str(e))
            display(f"Error: {e}", "error")
            raise typer.Exit(code=1)
        except Exception as e:
            logger.exception("command_crashed", command=func.__name__)
            display(f"Error: {e}", "error")
            raise typer.Exit(code=1)

    return wrapper  # type: ignore[return-value]
