"""AUR commands: search, inspect, build and install packages.

Builds run as the invoking user; only the final pacman transactions are
elevated.
"""

import os
from collections.abc import Collection
from pathlib import Path
from typing import Annotated

import typer
from rich.syntax import Syntax

from aurctl.aur.builder import Makepkg
from aurctl.aur.client import AurClient, sort_results
from aurctl.aur.git import FetchResult, GitClient
from aurctl.cli.display import (
    create_info_table,
    create_plan_table,
    create_upgrades_table,
    print_report_summary,
    print_search_results,
)
from aurctl.cli.types import (
    fail,
    get_aur_client,
    get_database,
    get_elevator,
    get_operator,
    get_settings,
    handle_errors,
)
from aurctl.core.config import Settings
from aurctl.core.orchestrator import Orchestrator, RunOptions, find_upgrades
from aurctl.core.paths import ensure_dir
from aurctl.core.resolver import Resolution, Resolver
from aurctl.models.build import FailureReason, ReviewMode
from aurctl.models.dependency import DependencyNode
from aurctl.utils.formatting import (
    console,
    create_table,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from aurctl.utils.shell import run_interactive

app = typer.Typer(
    help="Search, build and install AUR packages.",
    no_args_is_help=True,
)


def console_reviewer(node: DependencyNode, path: Path, mode: ReviewMode, text: str) -> bool:
    """Show a build script or diff and ask whether to build.

    In PKGBUILD mode the user may first open the script in ``$EDITOR``.
    """
    lexer = "diff" if mode == ReviewMode.DIFF else "bash"
    console.rule(f"[bold_header]{node.base}[/bold_header] ({mode.value})")
    console.print(Syntax(text, lexer, line_numbers=mode == ReviewMode.PKGBUILD))

    editor = os.environ.get("VISUAL") or os.environ.get("EDITOR")
    if mode == ReviewMode.PKGBUILD and editor:
        if typer.confirm(f"Edit the PKGBUILD of {node.base}?", default=False):
            run_interactive([editor, str(path / "PKGBUILD")])

    return typer.confirm(f"Build {node.base}?", default=True)


def _review_mode(
    settings: Settings,
    review: ReviewMode | None,
    hotedit: bool,
    diff: bool,
) -> ReviewMode:
    if review is not None:
        return review
    if diff:
        return ReviewMode.DIFF
    if hotedit:
        return ReviewMode.PKGBUILD
    return settings.build.review


def _report_resolution_errors(resolution: Resolution) -> None:
    for target, error in resolution.errors.items():
        print_error(f"{target}: {error}")


def _build_and_install(
    settings: Settings,
    aur_client: AurClient,
    resolution: Resolution,
    explicit: Collection[str],
    options: RunOptions,
    jobs: int | None,
    yes: bool,
    dry_run: bool,
) -> None:
    """Show the plan, confirm, run it and print the summary.

    Raises:
        typer.Exit: With code 1 if anything failed.
    """
    _report_resolution_errors(resolution)
    if not resolution.roots:
        raise typer.Exit(code=1)

    plan = resolution.build_plan()
    repo = resolution.repo_dependencies()
    console.print(create_plan_table(resolution))

    if dry_run:
        print_info("Dry run: nothing was built or installed.")
        if resolution.errors:
            raise typer.Exit(code=1)
        return

    question = f"\nProceed with {len(plan) + len(repo)} package(s)?"
    if not yes and not typer.confirm(question, default=True):
        print_info("Aborted.")
        return

    try:
        build_dir = ensure_dir(settings.build.directory, "build")
    except RuntimeError as e:
        fail(str(e))

    elevator = get_elevator(settings)
    orchestrator = Orchestrator(
        build_dir,
        aur_client,
        get_operator(settings),
        Makepkg(elevator),
        GitClient(elevator, timeout=settings.build.git_timeout_seconds),
        reviewer=console_reviewer,
        jobs=jobs or settings.build.jobs,
        fetch_jobs=settings.aur.jobs,
    )

    with handle_errors():
        report = orchestrator.run(plan, explicit, repo, options)
    print_report_summary(report)

    interrupted = any(r.reason == FailureReason.INTERRUPTED for r in report.results)
    if interrupted:
        raise typer.Exit(code=130)
    if not report.success or resolution.errors:
        raise typer.Exit(code=1)


@app.command()
def install(
    targets: Annotated[
        list[str],
        typer.Argument(help="Packages to install, e.g. foo or 'foo>=1.2'."),
    ],
    force_aur: Annotated[
        bool,
        typer.Option(
            "--aur", "-a", help="Take the targets from the AUR even if a repository has them."
        ),
    ] = False,
    refresh: Annotated[
        bool,
        typer.Option("--refresh", "-y", help="Pull existing build-script clones first."),
    ] = False,
    review: Annotated[
        ReviewMode | None,
        typer.Option("--review", "-r", help="Review before building.", case_sensitive=False),
    ] = None,
    hotedit: Annotated[
        bool,
        typer.Option("--hotedit", help="Review (and optionally edit) each PKGBUILD."),
    ] = False,
    diff: Annotated[
        bool,
        typer.Option("--diff", "-k", help="Review what changed since the last build."),
    ] = False,
    rebuild_vcs: Annotated[
        bool,
        typer.Option("--git", help="Always rebuild VCS (-git, -svn, ...) packages."),
    ] = False,
    jobs: Annotated[
        int | None,
        typer.Option("--jobs", "-j", min=1, help="Concurrent builds of independent packages."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "--noconfirm", help="Skip confirmation prompts."),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Only show the build plan."),
    ] = False,
) -> None:
    """Build and install AUR packages together with their dependencies."""
    settings = get_settings()
    options = RunOptions(
        refresh=refresh,
        review=_review_mode(settings, review, hotedit, diff),
        rebuild_vcs=rebuild_vcs,
    )

    with handle_errors(), get_aur_client(settings) as aur_client:
        resolution = Resolver(aur_client, get_database()).resolve(targets, force_aur=force_aur)
        _build_and_install(
            settings, aur_client, resolution, resolution.roots, options, jobs, yes, dry_run
        )


@app.command()
def upgrade(
    include_vcs: Annotated[
        bool,
        typer.Option("--git", help="Also rebuild every installed VCS package."),
    ] = False,
    ignore: Annotated[
        list[str] | None,
        typer.Option("--ignore", help="Never upgrade this package (repeatable)."),
    ] = None,
    review: Annotated[
        ReviewMode | None,
        typer.Option("--review", "-r", help="Review before building.", case_sensitive=False),
    ] = None,
    jobs: Annotated[
        int | None,
        typer.Option("--jobs", "-j", min=1, help="Concurrent builds of independent packages."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "--noconfirm", help="Skip confirmation prompts."),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Only show what would be upgraded."),
    ] = False,
) -> None:
    """Upgrade installed AUR packages that have newer versions."""
    settings = get_settings()

    with handle_errors(), get_aur_client(settings) as aur_client:
        database = get_database()
        upgrades, unknown = find_upgrades(
            database, aur_client, include_vcs=include_vcs, ignore=set(ignore or [])
        )
        if unknown:
            print_warning(f"Not in the AUR: {', '.join(unknown)}")
        if not upgrades:
            print_success("All AUR packages are up to date.")
            return

        console.print(create_upgrades_table(upgrades))
        names = [u.name for u in upgrades]
        explicit = set(database.explicit()) & set(names)
        resolution = Resolver(aur_client, database).resolve(names, force_aur=True)
        options = RunOptions(
            # Existing clones hold the installed version until pulled
            refresh=True,
            review=_review_mode(settings, review, False, False),
            rebuild_vcs=include_vcs,
        )
        _build_and_install(settings, aur_client, resolution, explicit, options, jobs, yes, dry_run)


@app.command()
def search(
    terms: Annotated[list[str], typer.Argument(help="Search terms; all must match.")],
    abc: Annotated[bool, typer.Option("--abc", help="Sort alphabetically.")] = False,
    reverse: Annotated[bool, typer.Option("--reverse", "-r", help="Reverse the order.")] = False,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-l", min=0, help="Show at most this many results."),
    ] = None,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Print names only.")] = False,
    by: Annotated[
        str,
        typer.Option("--by", help="Field to search: name, name-desc, maintainer, ..."),
    ] = "name-desc",
) -> None:
    """Search the AUR by name and description."""
    settings = get_settings()
    with handle_errors(), get_aur_client(settings) as aur_client:
        results = aur_client.search(terms, by=by)

    if not results:
        print_info("No packages found.")
        raise typer.Exit(code=1)
    print_search_results(sort_results(results, abc=abc, reverse=reverse, limit=limit), quiet)


@app.command()
def info(
    names: Annotated[list[str], typer.Argument(help="Package names.")],
) -> None:
    """Show AUR metadata of packages."""
    settings = get_settings()
    with handle_errors(), get_aur_client(settings) as aur_client:
        result = aur_client.lookup(names)

    for name in names:
        if name in result.found:
            console.print(create_info_table(result.found[name]))
    if result.missing:
        print_error(f"Not in the AUR: {', '.join(result.missing)}")
        raise typer.Exit(code=1)


@app.command()
def pkgbuild(
    package_base: Annotated[str, typer.Argument(help="Package base to show.")],
) -> None:
    """Print the current PKGBUILD of a package."""
    settings = get_settings()
    with handle_errors(), get_aur_client(settings) as aur_client:
        text = aur_client.pkgbuild(package_base)
    console.print(Syntax(text, "bash"))


def _print_fetches(title: str, outcome: dict[str, FetchResult | Exception]) -> bool:
    table = create_table(title, "Package Base", "Status")
    ok = True
    for base, fetched in outcome.items():
        if isinstance(fetched, Exception):
            ok = False
            table.add_row(base, f"[error]{fetched}[/error]")
        elif fetched.cloned:
            table.add_row(base, "[added]cloned[/added]")
        elif fetched.changed:
            table.add_row(base, "[changed]updated[/changed]")
        else:
            table.add_row(base, "[muted]up to date[/muted]")
    console.print(table)
    return ok


def _orchestrator_for_fetching(settings: Settings, aur_client: AurClient) -> Orchestrator:
    elevator = get_elevator(settings)
    return Orchestrator(
        settings.build.directory,
        aur_client,
        get_operator(settings),
        Makepkg(elevator),
        GitClient(elevator, timeout=settings.build.git_timeout_seconds),
        fetch_jobs=settings.aur.jobs,
    )


@app.command()
def clone(
    names: Annotated[list[str], typer.Argument(help="Packages whose build scripts to clone.")],
    directory: Annotated[
        Path,
        typer.Option("--dir", "-d", help="Where to clone (default: current directory)."),
    ] = Path("."),
) -> None:
    """Clone the build scripts of packages without building them."""
    settings = get_settings()
    with handle_errors(), get_aur_client(settings) as aur_client:
        result = aur_client.lookup(names)
        if result.missing:
            print_warning(f"Not in the AUR: {', '.join(result.missing)}")
        bases = [result.found[n].base for n in names if n in result.found]
        if not bases:
            raise typer.Exit(code=1)
        outcome = _orchestrator_for_fetching(settings, aur_client).clone(bases, directory)

    if not _print_fetches("Cloned", outcome) or result.missing:
        raise typer.Exit(code=1)


@app.command()
def refresh() -> None:
    """Pull every build-script clone in the build directory."""
    settings = get_settings()
    with handle_errors(), get_aur_client(settings) as aur_client:
        outcome = _orchestrator_for_fetching(settings, aur_client).refresh_clones()

    if not outcome:
        print_info(f"No clones in {settings.build.directory}")
        return
    if not _print_fetches("Refreshed", outcome):
        raise typer.Exit(code=1)
