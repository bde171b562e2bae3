"""Shared Rich display functions.

Provides table builders and summary printers for search results, build
plans and reports, cache listings, snapshots and planned actions.
"""

from collections.abc import Sequence

from rich.table import Table

from aurctl.aur.models import PackageMetadata
from aurctl.core.orchestrator import Upgrade
from aurctl.core.resolver import Resolution
from aurctl.models.action import Action, ActionResult, ActionType
from aurctl.models.build import BuildOutcome, BuildReport
from aurctl.models.dependency import DependencySource
from aurctl.models.snapshot import CacheEntry, Snapshot
from aurctl.utils.formatting import console, create_table, print_success

_SOURCE_STYLES: dict[DependencySource, str] = {
    DependencySource.REPO: "source_repo",
    DependencySource.AUR: "source_aur",
    DependencySource.VIRTUAL_PROVIDED: "source_virtual",
}

_OUTCOME_STYLES: dict[BuildOutcome, str] = {
    BuildOutcome.BUILT: "[success]built[/success]",
    BuildOutcome.FAILED: "[error]failed[/error]",
    BuildOutcome.SKIPPED: "[warning]skipped[/warning]",
}

_ACTION_STYLES: dict[ActionType, tuple[str, str]] = {
    ActionType.INSTALL: ("[added]+install[/added]", "added"),
    ActionType.REINSTALL: ("[changed]~cache[/changed]", "changed"),
    ActionType.REMOVE: ("[removed]-remove[/removed]", "removed"),
    ActionType.ADOPT: ("[info]adopt[/info]", "info"),
}


def print_search_results(packages: Sequence[PackageMetadata], quiet: bool = False) -> None:
    """Print AUR search results, or bare names with ``quiet``."""
    if quiet:
        for package in packages:
            console.print(package.name, highlight=False)
        return

    for package in packages:
        flags = ""
        if package.is_out_of_date:
            flags += " [error](out of date)[/error]"
        if package.is_orphaned:
            flags += " [warning](orphaned)[/warning]"
        console.print(
            f"[source_aur]aur/{package.name}[/source_aur] {package.version} "
            f"[muted]({package.votes} | {package.popularity:.2f})[/muted]{flags}",
            highlight=False,
        )
        if package.description:
            console.print(f"    {package.description}", highlight=False)


def create_info_table(package: PackageMetadata) -> Table:
    """Key/value table describing one AUR package."""
    table = Table(show_header=False, border_style="border", title=package.name)
    table.add_column("Field", style="bold_header")
    table.add_column("Value")

    rows = [
        ("Name", package.name),
        ("Package Base", package.base),
        ("Version", package.version),
        ("Description", package.description or ""),
        ("URL", package.url or ""),
        ("Maintainer", package.maintainer or "[warning]orphaned[/warning]"),
        ("Votes", str(package.votes)),
        ("Popularity", f"{package.popularity:.2f}"),
        ("Out of Date", "[error]yes[/error]" if package.is_out_of_date else "no"),
        ("Depends On", "  ".join(package.depends) or "None"),
        ("Make Deps", "  ".join(package.make_depends) or "None"),
        ("Check Deps", "  ".join(package.check_depends) or "None"),
        ("Optional Deps", "\n".join(package.opt_depends) or "None"),
        ("Provides", "  ".join(package.provides) or "None"),
        ("Conflicts With", "  ".join(package.conflicts) or "None"),
    ]
    for field, value in rows:
        table.add_row(field, value)
    return table


def create_plan_table(resolution: Resolution) -> Table:
    """Table of what will be installed: repository packages, then builds."""
    table = create_table("Build Plan", "Source", "Package", "Version", "Reason")
    roots = set(resolution.roots)

    for node in (*resolution.repo_dependencies(), *resolution.build_plan()):
        style = _SOURCE_STYLES[node.source]
        name = node.name if node.provider is None else f"{node.name} ({node.provider})"
        reason = "[package_explicit]explicit[/]" if node.name in roots else "[muted]dependency[/]"
        table.add_row(
            f"[{style}]{node.source.value}[/{style}]",
            name,
            node.version or "",
            reason,
        )
    return table


def create_report_table(report: BuildReport) -> Table:
    """Per-package outcome of a build run."""
    table = create_table("Build Summary", "Package", "Outcome", "Reason")
    for result in report.results:
        reason = result.reason.value.replace("_", " ") if result.reason else ""
        table.add_row(result.name, _OUTCOME_STYLES[result.outcome], f"[muted]{reason}[/muted]")
    return table


def print_report_summary(report: BuildReport) -> None:
    """Print the build summary table plus captured output of failures."""
    if not report.results:
        return

    console.print(create_report_table(report))
    for result in report.failed:
        if result.message:
            console.print(f"\n[error]{result.name}[/error]:")
            console.print(result.message, markup=False, highlight=False)

    if report.success:
        print_success(f"All {len(report.results)} package(s) built and installed.")
    else:
        console.print(
            f"\n[success]{len(report.built)} built[/success], "
            f"[error]{len(report.failed)} failed[/error], "
            f"[warning]{len(report.skipped)} skipped[/warning]"
        )


def create_upgrades_table(upgrades: Sequence[Upgrade]) -> Table:
    """Installed AUR packages with newer versions."""
    table = create_table("AUR Upgrades", "Package", "Installed", "Available")
    for upgrade in upgrades:
        table.add_row(
            upgrade.name,
            f"[removed]{upgrade.installed}[/removed]",
            f"[added]{upgrade.available}[/added]",
        )
    return table


def create_cache_table(entries: Sequence[CacheEntry], title: str = "Package Cache") -> Table:
    """Cached tarballs."""
    table = create_table(title, "Package", "Version", "File")
    for entry in entries:
        version = entry.version if entry.valid else f"[error]{entry.version} (invalid)[/error]"
        table.add_row(entry.package_name, version, f"[muted]{entry.file_path.name}[/muted]")
    return table


def create_snapshots_table(snapshots: Sequence[Snapshot]) -> Table:
    """Stored snapshots, numbered for selection (0 is the newest)."""
    table = create_table("Snapshots", "#", "Taken", "Packages", "Pinned")
    for index, snapshot in enumerate(snapshots):
        table.add_row(
            str(index),
            snapshot.timestamp.strftime("%Y-%m-%d %H:%M:%S UTC"),
            str(len(snapshot.packages)),
            "[info]yes[/info]" if snapshot.pinned else "",
        )
    return table


def create_actions_table(actions: Sequence[Action], dry_run: bool = False) -> Table:
    """Planned package actions."""
    title = "Planned Actions (Dry Run)" if dry_run else "Planned Actions"
    table = create_table(title, "Action", "Package", "Version", "Reason")
    for action in actions:
        label, style = _ACTION_STYLES[action.action_type]
        table.add_row(
            label,
            f"[{style}]{action.package}[/{style}]",
            action.version or "",
            f"[muted]{action.reason or ''}[/muted]",
        )
    return table


def create_results_table(results: Sequence[ActionResult]) -> Table:
    """Outcome of executed package actions."""
    table = create_table("Results", "Status", "Action", "Package", "Message")
    for result in results:
        if result.success:
            status = "[success]OK[/success]"
            message = result.message or ""
        else:
            status = "[error]FAIL[/error]"
            message = result.error or "Unknown error"
        table.add_row(
            status,
            result.action.action_type.value,
            result.action.package,
            f"[muted]{message}[/muted]",
        )
    return table


def print_name_list(title: str, names: Sequence[str]) -> None:
    """Print a heading and one package name per line."""
    console.print(f"[bold_header]{title}[/bold_header] ({len(names)})")
    for name in names:
        console.print(f"  {name}", highlight=False)
