"""Orphan commands.

Orphans are packages installed as dependencies that nothing requires
any more.
"""

from typing import Annotated

import typer

from aurctl.cli.display import print_name_list
from aurctl.cli.types import get_database, get_operator, get_settings, handle_errors
from aurctl.core.orphans import OrphanAnalyzer
from aurctl.core.privilege import Subcommand, reexec_elevated
from aurctl.utils.formatting import print_info, print_success

app = typer.Typer(
    help="Find, adopt and remove orphaned packages.",
    invoke_without_command=True,
)


def _analyzer(dry_run: bool = False) -> OrphanAnalyzer:
    return OrphanAnalyzer(get_database(), get_operator(get_settings(), dry_run=dry_run))


@app.callback()
def orphans(ctx: typer.Context) -> None:
    """List orphans when no subcommand is given."""
    if ctx.invoked_subcommand is not None:
        return
    with handle_errors():
        names = _analyzer().orphans()
    if not names:
        print_success("No orphans.")
        return
    print_name_list("Orphans", names)


@app.command()
def adopt(
    names: Annotated[list[str], typer.Argument(help="Packages to mark as explicitly installed.")],
) -> None:
    """Mark packages as explicitly installed so they stop being orphans."""
    with handle_errors():
        reexec_elevated(Subcommand.ORPHANS, {"adopt"})
        adopted = _analyzer().adopt(names)
    print_success(f"Adopted {', '.join(adopted)}")


@app.command()
def abandon(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt.")] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Show what would be removed."),
    ] = False,
) -> None:
    """Remove orphans repeatedly until none are left."""
    if dry_run:
        with handle_errors():
            planned = _analyzer(dry_run=True).abandon()
        if not planned:
            print_success("No orphans.")
            return
        print_name_list("Would Remove", planned)
        return

    with handle_errors():
        reexec_elevated(Subcommand.ORPHANS, {"abandon"})
        analyzer = _analyzer()
        current = analyzer.orphans()
        if not current:
            print_success("No orphans.")
            return
        print_name_list("Orphans", current)
        if not yes and not typer.confirm("\nRemove them and anything they leave orphaned?"):
            print_info("Aborted.")
            return
        removed = analyzer.abandon()
    print_success(f"Removed {len(removed)} package(s).")


@app.command()
def elderly() -> None:
    """List explicitly installed packages that nothing depends on."""
    with handle_errors():
        names = _analyzer().elderly()
    if not names:
        print_info("No such packages.")
        return
    print_name_list("Elderly", names)
