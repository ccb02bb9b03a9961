"""Entry point for ``python -m grill``."""

from grill.cli.commands import app

if __name__ == "__main__":
    app()
