"""Build orchestration for AUR packages.

Executes a build plan node by node through Fetch, Review, Build and
Install. A node that fails stays failed; its dependents are skipped
while independent branches continue.

Threads are used for fetching and building only. Reviews prompt the
user and installs modify the system, so both happen one at a time on
the calling thread.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Collection, Iterable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path

from aurctl.aur.builder import Makepkg
from aurctl.aur.client import AurClient
from aurctl.aur.git import FetchResult, GitClient
from aurctl.core.cache import parse_package_filename
from aurctl.core.errors import LocalChangesError, SubprocessError
from aurctl.core.version import vercmp
from aurctl.models.build import (
    BuildOutcome,
    BuildReport,
    BuildResult,
    FailureReason,
    ReviewMode,
)
from aurctl.models.dependency import DependencyNode
from aurctl.models.package import is_vcs_package
from aurctl.pacman.database import PacmanDatabase
from aurctl.pacman.operator import PacmanOperator

logger = logging.getLogger(__name__)

# Called with the node, its clone directory, the mode and the text to
# review; returns True to build.
Reviewer = Callable[[DependencyNode, Path, ReviewMode, str], bool]

# Lines of build output kept in a failed result
_OUTPUT_TAIL_LINES = 40


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Per-invocation behavior of the orchestrator.

    Attributes:
        refresh: Pull existing clones before building.
        review: What to show the user before each build.
        rebuild_vcs: Always rebuild VCS packages, even if unchanged.
    """

    refresh: bool = False
    review: ReviewMode = ReviewMode.NONE
    rebuild_vcs: bool = False


@dataclass(frozen=True, slots=True)
class BuildAttempt:
    """What a build worker hands back to the coordinating thread."""

    artifacts: tuple[Path, ...] = ()
    reason: FailureReason | None = None
    message: str | None = None


@dataclass(frozen=True, slots=True)
class Upgrade:
    """An installed foreign package with a newer AUR version."""

    name: str
    installed: str
    available: str


def _tail(output: str) -> str:
    return "\n".join(output.strip().splitlines()[-_OUTPUT_TAIL_LINES:])


class Orchestrator:
    """Drives a build plan to completion.

    Example:
        >>> orchestrator = Orchestrator(build_dir, aur, operator, Makepkg(e), GitClient(e))
        >>> report = orchestrator.run(resolution.build_plan(), explicit=resolution.roots)
        >>> report.success
    """

    def __init__(
        self,
        build_dir: Path,
        aur: AurClient,
        operator: PacmanOperator,
        builder: Makepkg,
        git: GitClient,
        reviewer: Reviewer | None = None,
        jobs: int = 1,
        fetch_jobs: int = 4,
    ) -> None:
        self._build_dir = build_dir
        self._aur = aur
        self._operator = operator
        self._builder = builder
        self._git = git
        self._reviewer = reviewer
        self._jobs = max(jobs, 1)
        self._fetch_jobs = max(fetch_jobs, 1)
        self._locks_guard = threading.Lock()
        self._base_locks: dict[str, threading.Lock] = {}
        self._base_builds: dict[str, BuildAttempt] = {}

    def _base_lock(self, base: str) -> threading.Lock:
        with self._locks_guard:
            return self._base_locks.setdefault(base, threading.Lock())

    def clone_dir(self, base: str) -> Path:
        """Directory of a package base's clone."""
        return self._build_dir / base

    def run(
        self,
        plan: Sequence[DependencyNode],
        explicit: Collection[str],
        repo_dependencies: Sequence[DependencyNode] = (),
        options: RunOptions | None = None,
    ) -> BuildReport:
        """Fetch, review, build and install every node of a plan.

        Args:
            plan: AUR nodes in build order (dependencies first).
            explicit: Names the user asked for; installed ``--asexplicit``.
            repo_dependencies: Repository nodes installed before any build.
            options: Behavior for this run.

        Returns:
            BuildReport with exactly one result per plan node, in plan order.

        Raises:
            PrivilegeDeniedError: If a fetch or install cannot get the
                privileges it needs.
        """
        options = options or RunOptions()
        results: dict[str, BuildResult] = {}
        self._base_builds.clear()
        if not plan and not repo_dependencies:
            return BuildReport(results=())

        failed_repo = self._install_repo_dependencies(repo_dependencies, explicit)
        for node in plan:
            missing = [c for c in node.children if c in failed_repo]
            if missing:
                results[node.name] = BuildResult(
                    node=node,
                    outcome=BuildOutcome.FAILED,
                    reason=FailureReason.MISSING_DEPENDENCY,
                    message=f"Repository dependencies not installed: {', '.join(missing)}",
                )

        fetches = self._fetch_phase(plan, results, options.refresh)
        self._cascade(plan, results)
        self._review_phase(plan, results, fetches, options.review)
        self._cascade(plan, results)
        self._build_phase(plan, results, fetches, explicit, options)

        return BuildReport(results=tuple(results[node.name] for node in plan))

    def _install_repo_dependencies(
        self,
        nodes: Sequence[DependencyNode],
        explicit: Collection[str],
    ) -> set[str]:
        """Install repository nodes; returns the names that failed."""
        if not nodes:
            return set()

        failed: set[str] = set()
        targets = [n for n in nodes if n.name in explicit]
        dependencies = [n for n in nodes if n.name not in explicit]
        for batch, as_explicit in ((targets, True), (dependencies, False)):
            if not batch:
                continue
            names = list(dict.fromkeys(n.install_name for n in batch))
            logger.info("Installing repository packages: %s", ", ".join(names))
            try:
                self._operator.sync_install(names, explicit=as_explicit)
            except SubprocessError as e:
                logger.error("Installing repository packages failed: %s", e)
                failed.update(n.name for n in batch)
        return failed

    def _fetch_phase(
        self,
        plan: Sequence[DependencyNode],
        results: dict[str, BuildResult],
        refresh: bool,
    ) -> dict[str, FetchResult]:
        bases = list(dict.fromkeys(n.base for n in plan if n.name not in results))
        fetches: dict[str, FetchResult] = {}
        errors: dict[str, tuple[FailureReason, str]] = {}

        if bases:
            workers = min(self._fetch_jobs, len(bases))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {base: pool.submit(self._fetch, base, refresh) for base in bases}
                for base, future in futures.items():
                    try:
                        fetches[base] = future.result()
                    except LocalChangesError as e:
                        errors[base] = (FailureReason.LOCAL_CHANGES, str(e))
                    except SubprocessError as e:
                        errors[base] = (FailureReason.FETCH_FAILED, e.output.strip() or str(e))

        for node in plan:
            if node.name not in results and node.base in errors:
                reason, message = errors[node.base]
                logger.warning("Fetching %s failed: %s", node.base, message)
                results[node.name] = BuildResult(
                    node=node, outcome=BuildOutcome.FAILED, reason=reason, message=message
                )
        return fetches

    def _fetch(self, base: str, refresh: bool, directory: Path | None = None) -> FetchResult:
        path = directory / base if directory is not None else self.clone_dir(base)
        with self._base_lock(base):
            return self._git.fetch(self._aur.clone_url(base), path, refresh=refresh)

    def _review_phase(
        self,
        plan: Sequence[DependencyNode],
        results: dict[str, BuildResult],
        fetches: dict[str, FetchResult],
        mode: ReviewMode,
    ) -> None:
        reviewer = self._reviewer
        if mode == ReviewMode.NONE or reviewer is None:
            return

        decisions: dict[str, bool] = {}
        for node in plan:
            if node.name in results:
                continue
            if node.base not in decisions:
                decisions[node.base] = self._review(reviewer, node, fetches[node.base], mode)
            if not decisions[node.base]:
                logger.info("Build of %s rejected during review", node.name)
                results[node.name] = BuildResult(
                    node=node,
                    outcome=BuildOutcome.SKIPPED,
                    reason=FailureReason.REVIEW_REJECTED,
                )

    def _review(
        self,
        reviewer: Reviewer,
        node: DependencyNode,
        fetch: FetchResult,
        mode: ReviewMode,
    ) -> bool:
        reviewed = None
        if mode == ReviewMode.DIFF and not fetch.cloned:
            try:
                reviewed = self._git.reviewed(fetch.path)
            except SubprocessError as e:
                logger.warning("Cannot read the reviewed revision of %s: %s", node.base, e)

        if reviewed == fetch.current:
            logger.debug("%s unchanged since last review", node.base)
            return True

        if reviewed is not None:
            try:
                text = self._git.diff(fetch.path, reviewed, fetch.current)
            except SubprocessError as e:
                text = f"Cannot compute diff: {e.output.strip() or e}"
            accepted = reviewer(node, fetch.path, mode, text)
        else:
            # PKGBUILD mode, or nothing approved yet to diff against
            try:
                text = (fetch.path / "PKGBUILD").read_text(encoding="utf-8")
            except OSError as e:
                text = f"Cannot read PKGBUILD: {e}"
            accepted = reviewer(node, fetch.path, ReviewMode.PKGBUILD, text)

        if accepted:
            try:
                self._git.mark_reviewed(fetch.path, fetch.current)
            except SubprocessError as e:
                logger.warning("Cannot record the review of %s: %s", node.base, e)
        return accepted

    def _build_phase(
        self,
        plan: Sequence[DependencyNode],
        results: dict[str, BuildResult],
        fetches: dict[str, FetchResult],
        explicit: Collection[str],
        options: RunOptions,
    ) -> None:
        plan_names = {node.name for node in plan}
        order = {node.name: index for index, node in enumerate(plan)}
        pending = [node for node in plan if node.name not in results]
        running: dict[Future[BuildAttempt], DependencyNode] = {}

        def ready(node: DependencyNode) -> bool:
            return all(
                c not in plan_names or (c in results and results[c].succeeded)
                for c in node.children
            )

        with ThreadPoolExecutor(max_workers=self._jobs) as pool:
            try:
                while pending or running:
                    self._cascade(plan, results)
                    pending = [n for n in pending if n.name not in results]

                    for node in list(pending):
                        if len(running) >= self._jobs:
                            break
                        if ready(node):
                            pending.remove(node)
                            future = pool.submit(self._build, node, fetches[node.base], options)
                            running[future] = node

                    if not running:
                        break

                    done, _ = wait(running, return_when=FIRST_COMPLETED)
                    for future in sorted(done, key=lambda f: order[running[f].name]):
                        node = running[future]
                        results[node.name] = self._finish(node, future.result(), explicit)
                        del running[future]
            except KeyboardInterrupt:
                logger.warning("Interrupted; stopping running builds")
                self._builder.terminate_all()
                for node in running.values():
                    results[node.name] = BuildResult(
                        node=node, outcome=BuildOutcome.FAILED, reason=FailureReason.INTERRUPTED
                    )
                for node in plan:
                    if node.name not in results:
                        results[node.name] = BuildResult(
                            node=node,
                            outcome=BuildOutcome.SKIPPED,
                            reason=FailureReason.INTERRUPTED,
                        )

        self._cascade(plan, results)

    def _build(self, node: DependencyNode, fetch: FetchResult, options: RunOptions) -> BuildAttempt:
        """Build one node; runs on a worker thread."""
        with self._base_lock(node.base):
            attempt = self._base_builds.get(node.base)
            if attempt is None:
                attempt = self._build_base(node, fetch, options)
                self._base_builds[node.base] = attempt

        if attempt.reason is not None:
            return attempt
        return BuildAttempt(artifacts=_artifacts_for(node.name, attempt.artifacts))

    def _build_base(
        self, node: DependencyNode, fetch: FetchResult, options: RunOptions
    ) -> BuildAttempt:
        try:
            artifacts = tuple(self._builder.packagelist(fetch.path))
        except SubprocessError as e:
            message = _tail(e.output) or str(e)
            return BuildAttempt(reason=FailureReason.BUILD_FAILED, message=message)

        stale = _stale_version(node, artifacts)
        if stale is not None:
            message = (
                f"The clone of {node.base} builds {stale} but the AUR has {node.version};"
                " pull it with --refresh"
            )
            return BuildAttempt(reason=FailureReason.OUTDATED_CLONE, message=message)

        force = options.rebuild_vcs and is_vcs_package(node.name)
        if not fetch.changed and not force and artifacts and all(p.exists() for p in artifacts):
            logger.info("Reusing existing build of %s", node.base)
            return BuildAttempt(artifacts=artifacts)

        output = self._builder.build(fetch.path)
        if not output.success:
            return BuildAttempt(reason=output.failure_reason, message=_tail(output.output))
        return BuildAttempt(artifacts=artifacts)

    def _finish(
        self,
        node: DependencyNode,
        attempt: BuildAttempt,
        explicit: Collection[str],
    ) -> BuildResult:
        """Install a finished build; runs on the coordinating thread."""
        if attempt.reason is not None:
            logger.warning("Build of %s failed (%s)", node.name, attempt.reason.value)
            return BuildResult(
                node=node,
                outcome=BuildOutcome.FAILED,
                reason=attempt.reason,
                message=attempt.message,
            )

        try:
            self._operator.install_files(attempt.artifacts, explicit=node.name in explicit)
        except SubprocessError as e:
            logger.warning("Installing %s failed", node.name)
            return BuildResult(
                node=node,
                outcome=BuildOutcome.FAILED,
                reason=FailureReason.INSTALL_FAILED,
                message=_tail(e.output) or str(e),
            )
        return BuildResult(node=node, outcome=BuildOutcome.BUILT, artifacts=attempt.artifacts)

    @staticmethod
    def _cascade(plan: Sequence[DependencyNode], results: dict[str, BuildResult]) -> None:
        """Skip every node with a failed or skipped dependency.

        Plan order puts dependencies first, so one pass is transitive.
        """
        for node in plan:
            if node.name in results:
                continue
            blocked = [
                c for c in node.children if c in results and not results[c].succeeded
            ]
            if blocked:
                results[node.name] = BuildResult(
                    node=node,
                    outcome=BuildOutcome.SKIPPED,
                    reason=FailureReason.DEPENDENCY_FAILED,
                    message=f"Dependency not built: {', '.join(blocked)}",
                )

    def clone(
        self, bases: Iterable[str], directory: Path
    ) -> dict[str, FetchResult | Exception]:
        """Clone build scripts without building.

        Returns:
            Package base to its FetchResult, or the error that stopped it.
        """
        outcome: dict[str, FetchResult | Exception] = {}
        for base in dict.fromkeys(bases):
            try:
                outcome[base] = self._fetch(base, refresh=True, directory=directory)
            except (LocalChangesError, SubprocessError) as e:
                outcome[base] = e
        return outcome

    def refresh_clones(self) -> dict[str, FetchResult | Exception]:
        """Pull every existing clone in the build directory.

        Returns:
            Package base to its FetchResult, or the error that stopped it.
        """
        if not self._build_dir.is_dir():
            return {}
        bases = sorted(p.name for p in self._build_dir.iterdir() if (p / ".git").is_dir())
        outcome: dict[str, FetchResult | Exception] = {}
        if not bases:
            return outcome

        with ThreadPoolExecutor(max_workers=min(self._fetch_jobs, len(bases))) as pool:
            futures = {base: pool.submit(self._fetch, base, True) for base in bases}
            for base, future in futures.items():
                try:
                    outcome[base] = future.result()
                except (LocalChangesError, SubprocessError) as e:
                    outcome[base] = e
        return outcome


def _stale_version(node: DependencyNode, artifacts: Sequence[Path]) -> str | None:
    """Version the clone would build, if older than the resolved AUR version.

    VCS packages compute their version while building, so they are never stale.
    """
    if node.version is None or is_vcs_package(node.name):
        return None
    for path in artifacts:
        parsed = parse_package_filename(path.name)
        if parsed is not None and parsed[0] == node.name:
            return parsed[1] if vercmp(parsed[1], node.version) < 0 else None
    return None


def _artifacts_for(name: str, artifacts: tuple[Path, ...]) -> tuple[Path, ...]:
    """Pick a split package's own files out of its base's artifacts."""
    own: list[Path] = []
    for path in artifacts:
        parsed = parse_package_filename(path.name)
        if parsed is not None and parsed[0] == name:
            own.append(path)
    return tuple(own) or artifacts


def find_upgrades(
    database: PacmanDatabase,
    aur: AurClient,
    include_vcs: bool = False,
    ignore: Collection[str] = (),
) -> tuple[list[Upgrade], list[str]]:
    """Compare installed foreign packages against the AUR.

    Args:
        database: Local package database.
        aur: AUR client.
        include_vcs: Also return every installed VCS package, whose
            version cannot be compared meaningfully.
        ignore: Names never to upgrade.

    Returns:
        Upgrades in name order, and foreign package names the AUR does
        not know.

    Raises:
        AurNetworkError: If the AUR cannot be queried.
        SubprocessError: If pacman cannot be queried.
    """
    foreign = {n: v for n, v in database.foreign().items() if n not in ignore}
    if not foreign:
        return [], []

    result = aur.lookup(sorted(foreign))
    upgrades: list[Upgrade] = []
    for name in sorted(result.found):
        installed = foreign[name]
        available = result.found[name].version
        if vercmp(available, installed) > 0 or (include_vcs and is_vcs_package(name)):
            upgrades.append(Upgrade(name=name, installed=installed, available=available))
    return upgrades, list(result.missing)
