"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
import os
from pathlib import Path
from typing import Annotated

import typer
from rich.logging import RichHandler

from aurctl import __version__
from aurctl.cli.commands import aur, backup, cache, config, deps, orphans, pacman
from aurctl.utils.formatting import err_console

# Create main Typer app
app = typer.Typer(
    name="aurctl",
    help="AUR synchronization, builds, cache and snapshots on top of pacman.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"aurctl version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool = False, quiet: bool = False, level: str | None = None) -> int:
    """Route the ``aurctl`` logger through Rich on stderr.

    Returns:
        The effective level.
    """
    if level is not None:
        effective = getattr(logging, level.upper())
    elif verbose:
        effective = logging.DEBUG
    elif quiet:
        effective = logging.ERROR
    else:
        effective = logging.WARNING

    logger = logging.getLogger("aurctl")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(console=err_console, show_path=False, show_time=verbose)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(effective)
    logger.propagate = False
    return effective


def _validate_level(value: str | None) -> str | None:
    if value is not None and value.lower() not in LOG_LEVELS:
        raise typer.BadParameter(f"must be one of: {', '.join(LOG_LEVELS)}")
    return value


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-essential output.",
        ),
    ] = False,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            callback=_validate_level,
            help="Log level: debug, info, warning, error or critical.",
        ),
    ] = None,
    config_home: Annotated[Path | None, typer.Option("--config-home", hidden=True)] = None,
    state_home: Annotated[Path | None, typer.Option("--state-home", hidden=True)] = None,
    cache_home: Annotated[Path | None, typer.Option("--cache-home", hidden=True)] = None,
) -> None:
    """aurctl - AUR package management on top of pacman.

    Build and install AUR packages with their dependencies, manage the
    package cache, take and restore snapshots, and handle orphans.
    """
    configure_logging(verbose=verbose, quiet=quiet, level=log_level)
    # Set by an elevated re-run to keep the invoking user's directories
    for variable, value in (
        ("XDG_CONFIG_HOME", config_home),
        ("XDG_STATE_HOME", state_home),
        ("XDG_CACHE_HOME", cache_home),
    ):
        if value is not None:
            os.environ[variable] = str(value)

    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


# Register commands
app.add_typer(aur.app, name="aur")
app.add_typer(backup.app, name="backup")
app.add_typer(cache.app, name="cache")
app.add_typer(orphans.app, name="orphans")
app.add_typer(config.app, name="config")
app.command("deps")(deps.graph)
app.command("pacman", context_settings=pacman.CONTEXT_SETTINGS)(pacman.passthrough)


if __name__ == "__main__":
    app()
