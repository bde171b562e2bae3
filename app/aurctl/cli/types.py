"""Shared helpers for CLI commands.

Builds the service objects commands work with from the loaded settings,
and maps domain errors to a printed message plus a non-zero exit.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import NoReturn

import typer

from aurctl.aur.client import AurClient
from aurctl.core.config import Settings, load_settings
from aurctl.core.errors import AurctlError, ConfigError, SubprocessError
from aurctl.core.privilege import Elevator
from aurctl.pacman.database import PacmanDatabase
from aurctl.pacman.operator import PacmanOperator
from aurctl.utils.formatting import err_console, print_error


def fail(message: str, code: int = 1) -> NoReturn:
    """Print an error and exit with a non-zero status."""
    print_error(message)
    raise typer.Exit(code=code)


def get_settings() -> Settings:
    """Load settings, exiting with an error message if they are invalid."""
    try:
        return load_settings()
    except ConfigError as e:
        fail(str(e))


def get_elevator(settings: Settings) -> Elevator:
    """Elevation boundary configured with the build user."""
    return Elevator(build_user=settings.build.user)


def get_database() -> PacmanDatabase:
    """pacman query interface, exiting if pacman is missing."""
    database = PacmanDatabase()
    if not database.is_available():
        fail("pacman is not available on this system")
    return database


def get_operator(settings: Settings, dry_run: bool = False) -> PacmanOperator:
    """pacman transaction interface."""
    return PacmanOperator(get_elevator(settings), dry_run=dry_run)


def get_aur_client(settings: Settings) -> AurClient:
    """AUR RPC client using the configured endpoint and limits."""
    return AurClient(settings.aur)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn aurctl errors into a printed message and exit code 1.

    Tool output attached to a failed subprocess is printed verbatim.
    """
    try:
        yield
    except SubprocessError as e:
        print_error(str(e))
        if e.output.strip():
            err_console.print(e.output.strip(), markup=False, highlight=False)
        raise typer.Exit(code=1) from e
    except AurctlError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
