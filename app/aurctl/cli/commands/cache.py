"""Package cache commands.

Deleting and installing commands re-run aurctl under sudo unless they
are dry runs; listing commands never need root.
"""

from pathlib import Path
from typing import Annotated

import typer

from aurctl.cli.display import create_cache_table, print_name_list
from aurctl.cli.types import fail, get_database, get_operator, get_settings, handle_errors
from aurctl.core.cache import CacheManager
from aurctl.core.privilege import Subcommand, reexec_elevated
from aurctl.core.snapshots import SnapshotStore
from aurctl.models.snapshot import CacheEntry
from aurctl.utils.formatting import (
    console,
    format_size,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Inspect and prune the pacman package cache.",
    no_args_is_help=True,
)

DryRunOption = Annotated[
    bool,
    typer.Option("--dry-run", "-n", help="Show what would happen without doing it."),
]


def _manager() -> CacheManager:
    return CacheManager(get_settings().cache.directory, get_database())


def _elevate(flag: str, dry_run: bool = False) -> None:
    if dry_run:
        return
    with handle_errors():
        reexec_elevated(Subcommand.CACHE, {flag})


def _print_removed(entries: list[CacheEntry], dry_run: bool) -> None:
    if not entries:
        print_info("Nothing to remove.")
        return
    title = "Would Remove" if dry_run else "Removed"
    console.print(create_cache_table(entries, title=title))
    freed = sum(e.file_path.stat().st_size for e in entries if e.file_path.exists())
    if dry_run:
        print_success(f"{len(entries)} package file(s) would be removed ({format_size(freed)}).")
    else:
        print_success(f"Removed {len(entries)} package file(s).")


@app.command("list")
def list_entries(
    verify: Annotated[
        bool,
        typer.Option("--verify", help="Check each tarball with pacman (slow)."),
    ] = False,
) -> None:
    """List every cached package tarball."""
    entries = _manager().entries(verify=verify)
    if not entries:
        print_info("The package cache is empty.")
        return
    console.print(create_cache_table(entries))


@app.command()
def search(
    term: Annotated[str, typer.Argument(help="Substring of the package name.")],
) -> None:
    """Find cached tarballs by package name."""
    entries = _manager().search(term)
    if not entries:
        print_info(f"No cached packages match '{term}'.")
        raise typer.Exit(code=1)
    console.print(create_cache_table(entries, title=f"Cache: {term}"))


@app.command()
def info(
    names: Annotated[list[str], typer.Argument(help="Package names.")],
) -> None:
    """Show the cached versions of packages, newest first."""
    found = False
    for name, entries in _manager().info(names).items():
        if entries:
            found = True
            console.print(create_cache_table(entries, title=name))
        else:
            print_warning(f"{name}: no cached versions")
    if not found:
        raise typer.Exit(code=1)


@app.command()
def missing() -> None:
    """List installed packages whose tarball is not cached."""
    with handle_errors():
        pairs = _manager().missing()
    if not pairs:
        print_success("Every installed package has a cached tarball.")
        return
    print_name_list("Not Cached", [f"{name} {version}" for name, version in pairs])


@app.command()
def clean(
    keep: Annotated[
        int,
        typer.Argument(min=0, help="Versions to keep per package (0 removes all)."),
    ],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt.")] = False,
    dry_run: DryRunOption = False,
) -> None:
    """Keep only the newest N versions of each cached package."""
    _elevate("clean", dry_run)
    manager = _manager()
    doomed = manager.clean(keep, dry_run=True)
    if not doomed:
        print_info("Nothing to remove.")
        return
    if not dry_run and not yes:
        console.print(create_cache_table(doomed, title="Will Remove"))
        if not typer.confirm(f"\nDelete {len(doomed)} package file(s)?", default=False):
            print_info("Aborted.")
            return

    try:
        removed = manager.clean(keep, dry_run=dry_run)
    except OSError as e:
        fail(f"Failed to delete from the cache: {e}")
    _print_removed(removed, dry_run)


@app.command()
def notsaved(dry_run: DryRunOption = False) -> None:
    """Remove tarballs that no snapshot refers to."""
    _elevate("notsaved", dry_run)
    settings = get_settings()
    snapshots = SnapshotStore(settings.backup.directory).list_snapshots()
    if not snapshots:
        fail("No snapshots exist; refusing to remove the whole cache")

    try:
        removed = _manager().clean_unsaved(snapshots, dry_run=dry_run)
    except OSError as e:
        fail(f"Failed to delete from the cache: {e}")
    _print_removed(removed, dry_run)


@app.command()
def invalid(dry_run: DryRunOption = False) -> None:
    """Remove tarballs whose contents do not match their file name."""
    _elevate("invalid", dry_run)
    try:
        with handle_errors():
            removed = _manager().clean_invalid(dry_run=dry_run)
    except OSError as e:
        fail(f"Failed to delete from the cache: {e}")
    _print_removed(removed, dry_run)


@app.command()
def backup(
    target: Annotated[Path, typer.Argument(help="Directory to copy the cache into.")],
    dry_run: DryRunOption = False,
) -> None:
    """Copy the package cache into another directory."""
    try:
        copied = _manager().backup_to(target, dry_run=dry_run)
    except OSError as e:
        fail(f"Failed to copy the cache: {e}")
    verb = "Would copy" if dry_run else "Copied"
    print_success(f"{verb} {len(copied)} file(s) to {target}")


@app.command()
def refresh(dry_run: DryRunOption = False) -> None:
    """Download tarballs of installed packages that are not cached."""
    _elevate("refresh", dry_run)
    with handle_errors():
        pairs = _manager().missing()
        if not pairs:
            print_success("Every installed package has a cached tarball.")
            return
        print_name_list("Downloading", [name for name, _ in pairs])
        get_operator(get_settings(), dry_run=dry_run).download([name for name, _ in pairs])
    print_success(f"Requested {len(pairs)} package(s).")


@app.command()
def downgrade(
    name: Annotated[str, typer.Argument(help="Installed package to downgrade.")],
    version: Annotated[
        str | None,
        typer.Argument(help="Cached version to install (prompted if omitted)."),
    ] = None,
    dry_run: DryRunOption = False,
) -> None:
    """Install an older cached version of a package."""
    _elevate("downgrade", dry_run)
    settings = get_settings()
    database = get_database()
    manager = CacheManager(settings.cache.directory, database)

    installed = database.versions()
    if name not in installed:
        fail(f"{name} is not installed")
    candidates = [e for e in manager.versions_of(name) if e.version != installed[name]]
    if not candidates:
        fail(f"No other cached versions of {name}")

    if version is None:
        console.print(f"[bold_header]{name}[/bold_header] (installed: {installed[name]})")
        for index, entry in enumerate(candidates):
            console.print(f"  {index}) {entry.version}", highlight=False)
        choice = typer.prompt("Version to install", type=int, default=0)
        if not 0 <= choice < len(candidates):
            fail(f"No choice {choice}")
        entry = candidates[choice]
    else:
        matches = [e for e in candidates if e.version == version]
        if not matches:
            fail(f"{name} {version} is not in the package cache")
        entry = matches[0]

    with handle_errors():
        get_operator(settings, dry_run=dry_run).install_files(
            [entry.file_path], explicit=name in database.explicit()
        )
    verb = "Would install" if dry_run else "Installed"
    print_success(f"{verb} {name} {entry.version}")
