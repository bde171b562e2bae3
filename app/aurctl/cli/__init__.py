"""CLI package for aurctl.

This package contains the Typer application and all subcommands.
"""

from aurctl.cli.main import app

__all__ = ["app"]
