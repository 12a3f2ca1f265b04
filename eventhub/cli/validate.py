"""Validate command for configuration files.

Loads the file, validates it and prints the effective settings.
"""

from pathlib import Path

import typer

from eventhub.cli.utils import config_summary, display, handle_errors
from eventhub.services.config_manager import ConfigManager


@handle_errors
def validate_command(
    config_path: Path = typer.Argument(..., help="Config file to validate"),
):
    """Validate configuration file syntax and semantics."""
    # Unlike serve, a missing file is an error here rather than "use defaults"
    if not config_path.exists():
        display(f"Validation failed: configuration file not found: {config_path}", "error")
        raise typer.Exit(code=1)

    try:
        config = ConfigManager(config_path=str(config_path)).load_config()
    except Exception as e:
        display(f"Validation failed: {e}", "error")
        raise typer.Exit(code=1)

    display("Configuration is valid!", "success")
    for line in config_summary(config):
        display(line)
