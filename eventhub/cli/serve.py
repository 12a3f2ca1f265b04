"""Serve command.

Runs the HTTP API with the maintenance scheduler in one event loop.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer

from eventhub.cli.utils import config_summary, display, handle_errors, load_config
from eventhub.observability.logging import configure_logging
from eventhub.services.config_manager import DEFAULT_CONFIG_PATH


@handle_errors
def serve_command(
    config_path: Path = typer.Option(
        Path(DEFAULT_CONFIG_PATH), "--config", "-c", help="Configuration file"
    ),
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Bind host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
):
    """Start the API server and maintenance scheduler."""
    from eventhub.api.server import AppContext, run_server_async

    config = load_config(config_path)
    configure_logging(
        level=config.logging.level,
        json_output=config.logging.json_output,
    )

    bind_host = host or config.server.host
    bind_port = port or config.server.port

    context = AppContext.from_config(config, with_scheduler=True)

    for line in config_summary(config):
        display(line)
    display(f"Starting EventHub API at http://{bind_host}:{bind_port}")
    asyncio.run(
        run_server_async(
            context,
            host=bind_host,
            port=bind_port,
            log_level=config.logging.level.lower(),
        )
    )
