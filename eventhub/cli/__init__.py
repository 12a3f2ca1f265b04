"""EventHub CLI Package.

Usage:
    python -m eventhub.cli serve --config config/eventhub.yaml
    python -m eventhub.cli validate config/eventhub.yaml
"""

import typer

from eventhub.cli.serve import serve_command
from eventhub.cli.validate import validate_command

app = typer.Typer(help="EventHub media cache and background jobs")

app.command(name="serve")(serve_command)
app.command(name="validate")(validate_command)

__all__ = [
    "app",
    "serve_command",
    "validate_command",
]
