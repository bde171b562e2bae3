"""Build orchestration models.

This module defines the per-package outcome of a build run and the
report that aggregates them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from aurctl.models.dependency import DependencyNode


class ReviewMode(str, Enum):
    """What to show the user before building a package.

    Attributes:
        NONE: Build without review.
        PKGBUILD: Show/edit the build script itself.
        DIFF: Show the changes since the last approved revision.
    """

    NONE = "none"
    PKGBUILD = "pkgbuild"
    DIFF = "diff"


class BuildOutcome(str, Enum):
    """Final state of one plan node."""

    BUILT = "built"
    FAILED = "failed"
    SKIPPED = "skipped"


class FailureReason(str, Enum):
    """Why a node did not end up BUILT.

    Attributes:
        LOCAL_CHANGES: The local clone has edits or diverged from the remote.
        FETCH_FAILED: Cloning or pulling the build scripts failed.
        REVIEW_REJECTED: The user declined the build script.
        MISSING_DEPENDENCY: makepkg reported unsatisfied dependencies.
        OUTDATED_CLONE: The clone builds an older version than the AUR offers.
        BUILD_FAILED: makepkg exited with an error.
        INSTALL_FAILED: pacman could not install the built packages.
        INTERRUPTED: The user interrupted the run.
        DEPENDENCY_FAILED: A dependency of this node failed or was skipped.
    """

    LOCAL_CHANGES = "local_changes"
    FETCH_FAILED = "fetch_failed"
    REVIEW_REJECTED = "review_rejected"
    MISSING_DEPENDENCY = "missing_dependency"
    OUTDATED_CLONE = "outdated_clone"
    BUILD_FAILED = "build_failed"
    INSTALL_FAILED = "install_failed"
    INTERRUPTED = "interrupted"
    DEPENDENCY_FAILED = "dependency_failed"


@dataclass(frozen=True, slots=True)
class BuildResult:
    """Outcome of one node of a build plan.

    Recorded exactly once per node and never mutated afterwards.

    Attributes:
        node: The plan node.
        outcome: BUILT, FAILED or SKIPPED.
        reason: Why the node failed or was skipped (None when built).
        message: Human-readable detail, e.g. captured tool output.
        artifacts: Package files that were installed.
    """

    node: DependencyNode
    outcome: BuildOutcome
    reason: FailureReason | None = None
    message: str | None = None
    artifacts: tuple[Path, ...] = field(default=())

    @property
    def name(self) -> str:
        """Package name of the node."""
        return self.node.name

    @property
    def succeeded(self) -> bool:
        """Check if the node was built and installed."""
        return self.outcome == BuildOutcome.BUILT


@dataclass(frozen=True, slots=True)
class BuildReport:
    """All results of one orchestrator run, in plan order."""

    results: tuple[BuildResult, ...]

    def _with(self, outcome: BuildOutcome) -> list[BuildResult]:
        return [r for r in self.results if r.outcome == outcome]

    @property
    def built(self) -> list[BuildResult]:
        """Results that ended BUILT."""
        return self._with(BuildOutcome.BUILT)

    @property
    def failed(self) -> list[BuildResult]:
        """Results that ended FAILED."""
        return self._with(BuildOutcome.FAILED)

    @property
    def skipped(self) -> list[BuildResult]:
        """Results that ended SKIPPED."""
        return self._with(BuildOutcome.SKIPPED)

    @property
    def success(self) -> bool:
        """True if every node was built."""
        return all(r.succeeded for r in self.results)

    def get(self, name: str) -> BuildResult | None:
        """Find the result for a package name."""
        for result in self.results:
            if result.name == name:
                return result
        return None
