"""CLI entry point.

Allows running the CLI as a module: python -m eventhub.cli
"""

from eventhub.cli import app

if __name__ == "__main__":
    app()
