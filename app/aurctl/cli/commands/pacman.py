"""Pass-through to pacman.

Arguments are forwarded with aurctl's own global flags removed, and the
command is elevated only if the operation needs root.
"""

import typer

from aurctl.cli.types import fail, get_elevator, get_settings, handle_errors
from aurctl.core.privilege import classify_pacman_args, translate_flags
from aurctl.utils.shell import run_interactive

CONTEXT_SETTINGS = {"allow_extra_args": True, "ignore_unknown_options": True}


def passthrough(ctx: typer.Context) -> None:
    """Run pacman with the given arguments, e.g. [bold]aurctl pacman -Syu[/bold]."""
    args = translate_flags(ctx.args)
    try:
        subcommand, flags = classify_pacman_args(args)
    except ValueError as e:
        fail(str(e))

    settings = get_settings()
    with handle_errors():
        command = get_elevator(settings).wrap(["pacman", *args], subcommand, flags)

    try:
        code = run_interactive(command)
    except FileNotFoundError:
        fail("pacman is not available on this system")
    raise typer.Exit(code=code)
