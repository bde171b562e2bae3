"""Action models for package operations.

This module defines data structures for representing package management
actions (install, remove, reinstall from cache, adopt) planned by restore
and orphan handling, and their execution results.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class ActionType(Enum):
    """Type of package management action.

    Attributes:
        INSTALL: Install a package from the sync databases.
        REMOVE: Remove a package (and its now unneeded dependencies).
        REINSTALL: Install a specific version from a cached tarball.
        ADOPT: Mark a package as explicitly installed.
    """

    INSTALL = "install"
    REMOVE = "remove"
    REINSTALL = "reinstall"
    ADOPT = "adopt"


@dataclass(frozen=True, slots=True)
class Action:
    """Represents a single package management action to be executed.

    Attributes:
        action_type: The type of action.
        package: Name of the package to operate on.
        version: Target version, when the action pins one.
        path: Cached tarball to install from (REINSTALL only).
        reason: Optional explanation for why this action is being taken.
    """

    action_type: ActionType
    package: str
    version: str | None = None
    path: Path | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        """Validate action data after initialization."""
        if not self.package:
            msg = "Package name cannot be empty"
            raise ValueError(msg)
        if self.action_type == ActionType.REINSTALL and self.path is None:
            msg = f"Reinstall of {self.package} needs a cached tarball"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Result of executing a package management action.

    Attributes:
        action: The action that was executed.
        success: Whether the action completed successfully.
        message: Optional success message or additional information.
        error: Optional error message if the action failed.
    """

    action: Action
    success: bool
    message: str | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        """Check if the action failed."""
        return not self.success
