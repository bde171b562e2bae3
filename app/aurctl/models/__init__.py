"""Data models for aurctl.

This module exports the core data structures used throughout the application.
"""

from aurctl.models.action import Action, ActionResult, ActionType
from aurctl.models.build import (
    BuildOutcome,
    BuildReport,
    BuildResult,
    FailureReason,
    ReviewMode,
)
from aurctl.models.dependency import DependencyNode, DependencySource
from aurctl.models.package import (
    InstalledPackage,
    PackageTarget,
    VersionConstraint,
    is_vcs_package,
)
from aurctl.models.snapshot import CacheEntry, Snapshot, create_snapshot

__all__ = [
    "Action",
    "ActionResult",
    "ActionType",
    "BuildOutcome",
    "BuildReport",
    "BuildResult",
    "CacheEntry",
    "DependencyNode",
    "DependencySource",
    "FailureReason",
    "InstalledPackage",
    "PackageTarget",
    "ReviewMode",
    "Snapshot",
    "VersionConstraint",
    "create_snapshot",
    "is_vcs_package",
]
