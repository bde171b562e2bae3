"""Snapshot commands: record and restore the explicit package set."""

from typing import Annotated

import typer

from aurctl.cli.display import create_actions_table, create_results_table, create_snapshots_table
from aurctl.cli.types import fail, get_database, get_operator, get_settings, handle_errors
from aurctl.core.cache import CacheManager
from aurctl.core.snapshots import SnapshotStore
from aurctl.utils.formatting import console, print_info, print_success, print_warning

app = typer.Typer(
    help="Take and restore snapshots of explicitly installed packages.",
    no_args_is_help=True,
)


def _store() -> SnapshotStore:
    return SnapshotStore(get_settings().backup.directory)


@app.command()
def create(
    pin: Annotated[
        bool,
        typer.Option("--pin", help="Never remove this snapshot when cleaning."),
    ] = False,
) -> None:
    """Record the explicitly installed packages and their versions."""
    database = get_database()
    with handle_errors():
        snapshot = _store().backup(database.explicit(), pinned=pin)
    print_success(f"Saved snapshot of {len(snapshot.packages)} package(s): {snapshot.filename}")


@app.command("list")
def list_snapshots() -> None:
    """List stored snapshots, newest first."""
    snapshots = _store().list_snapshots()
    if not snapshots:
        print_info("No snapshots yet. Create one with 'aurctl backup create'.")
        return
    console.print(create_snapshots_table(snapshots))


@app.command()
def restore(
    index: Annotated[
        int,
        typer.Argument(min=0, help="Snapshot number from 'backup list' (0 is the newest)."),
    ] = 0,
    keep_extras: Annotated[
        bool,
        typer.Option("--keep-extras", help="Do not remove packages missing from the snapshot."),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation prompt."),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Show what would change without doing it."),
    ] = False,
) -> None:
    """Bring the explicit package set back to a snapshot.

    Versions are restored from the package cache where possible.
    """
    settings = get_settings()
    store = SnapshotStore(settings.backup.directory)
    snapshots = store.list_snapshots()
    if not snapshots:
        fail("No snapshots to restore from")
    if index >= len(snapshots):
        fail(f"No snapshot #{index}; there are {len(snapshots)}")
    snapshot = snapshots[index]

    database = get_database()
    with handle_errors():
        plan = store.restore_plan(
            snapshot,
            database.versions(),
            database.explicit(),
            CacheManager(settings.cache.directory, database),
            remove_extras=not keep_extras,
        )

    for name, version in plan.unavailable:
        print_warning(f"{name} {version} is not in the package cache and cannot be restored")
    if not plan.actions:
        if plan.unavailable:
            raise typer.Exit(code=1)
        print_success("System already matches the snapshot.")
        return

    console.print(create_actions_table(list(plan.actions), dry_run=dry_run))
    if not dry_run and not yes and not typer.confirm("\nApply these changes?", default=False):
        print_info("Aborted.")
        return

    with handle_errors():
        results = get_operator(settings, dry_run=dry_run).execute(list(plan.actions))
    console.print(create_results_table(results))

    if any(r.failed for r in results) or plan.unavailable:
        raise typer.Exit(code=1)


@app.command()
def clean(
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Show what would be removed."),
    ] = False,
) -> None:
    """Remove unpinned snapshots whose versions are no longer cached."""
    settings = get_settings()
    store = SnapshotStore(settings.backup.directory)
    with handle_errors():
        removed = store.clean(CacheManager(settings.cache.directory), dry_run=dry_run)

    if not removed:
        print_info("No snapshots to remove.")
        return
    console.print(create_snapshots_table(removed))
    verb = "Would remove" if dry_run else "Removed"
    print_success(f"{verb} {len(removed)} snapshot(s).")
