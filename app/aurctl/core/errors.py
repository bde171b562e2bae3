"""Exception hierarchy for aurctl.

Resolution-time errors are collected per target by the resolver and
reported together; build-time failures are recorded as values in the
build report instead of being raised.
"""

from __future__ import annotations


class AurctlError(Exception):
    """Base exception for all aurctl errors."""


class ConfigError(AurctlError):
    """Raised when the settings file cannot be read or is invalid."""


class AurNetworkError(AurctlError):
    """Raised when the AUR is unreachable or answers with garbage."""


class PrivilegeDeniedError(AurctlError):
    """Raised when elevation is required but unavailable or refused.

    Also raised when a build would have to run as root.
    """


class SnapshotError(AurctlError):
    """Raised when a snapshot cannot be written or read."""


class LocalChangesError(AurctlError):
    """A build-script clone has uncommitted edits or diverged from the AUR."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"{path}: {detail}")


class SubprocessError(AurctlError):
    """A package manager or build tool exited with a non-zero status.

    Attributes:
        command: The command that was run.
        returncode: Its exit status.
        output: Captured stdout/stderr, verbatim.
    """

    def __init__(self, command: list[str], returncode: int, output: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(f"{' '.join(command)} exited with status {returncode}")


class ResolutionError(AurctlError):
    """Base class for errors that fail the resolution of one target."""


class UnknownPackageError(ResolutionError):
    """A name is neither in the sync databases nor in the AUR."""

    def __init__(self, name: str, required_by: str | None = None) -> None:
        self.name = name
        self.required_by = required_by
        if required_by:
            message = f"Unknown package: {name} (required by {required_by})"
        else:
            message = f"Unknown package: {name}"
        super().__init__(message)


class CyclicDependencyError(ResolutionError):
    """A package depends on itself through its own ancestor chain."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(f"Dependency cycle: {' -> '.join(cycle)}")


class VersionMismatchError(ResolutionError):
    """The AUR version of a package does not satisfy a version constraint."""

    def __init__(self, name: str, required: str, available: str) -> None:
        self.name = name
        self.required = required
        self.available = available
        super().__init__(f"{name}: {required} required, AUR has {available}")
