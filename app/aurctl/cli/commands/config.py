"""Settings file commands."""

from typing import Annotated

import tomli_w
import typer

from aurctl.cli.types import fail, get_settings
from aurctl.core.config import Settings, save_settings
from aurctl.core.errors import ConfigError
from aurctl.core.paths import get_settings_path
from aurctl.utils.formatting import console, print_success, print_warning

app = typer.Typer(
    help="Show and initialize the settings file.",
    no_args_is_help=True,
)


@app.command()
def show() -> None:
    """Print the effective settings as TOML."""
    settings = get_settings()
    data = settings.model_dump(mode="json", exclude_none=True)
    if not get_settings_path().exists():
        print_warning(f"{get_settings_path()} does not exist; showing defaults")
    console.print(tomli_w.dumps(data), markup=False, highlight=False)


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing settings file."),
    ] = False,
) -> None:
    """Write a settings file with the default values."""
    path = get_settings_path()
    if path.exists() and not force:
        fail(f"{path} already exists (use --force to overwrite)")
    try:
        written = save_settings(Settings(), path)
    except ConfigError as e:
        fail(str(e))
    print_success(f"Wrote {written}")


@app.command()
def path() -> None:
    """Print the location of the settings file."""
    typer.echo(str(get_settings_path()))
