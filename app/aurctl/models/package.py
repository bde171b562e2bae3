"""Package models for targets and installed packages.

This module defines the core data structures for representing requested
packages (with optional version constraints) and packages found in the
local pacman database.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from aurctl.core.version import satisfies

# Longest operators first so ">=" is not read as ">"
_CONSTRAINT_PATTERN = re.compile(r"^(?P<name>[^<>=]+?)(?:(?P<op>>=|<=|=|<|>)(?P<version>.+))?$")


@dataclass(frozen=True, slots=True)
class VersionConstraint:
    """Version requirement attached to a dependency, e.g. ``>=1.2-1``.

    Attributes:
        operator: Comparison operator (=, <, <=, >, >=).
        version: Version the operator compares against.
    """

    operator: str
    version: str

    def __str__(self) -> str:
        return f"{self.operator}{self.version}"

    def allows(self, version: str) -> bool:
        """Check whether a concrete version satisfies this constraint."""
        return satisfies(version, self.operator, self.version)


@dataclass(frozen=True, slots=True)
class PackageTarget:
    """A requested package name plus an optional version constraint.

    Created from CLI arguments and from dependency strings of AUR
    packages. Immutable once parsed.

    Attributes:
        name: Package (or provided virtual) name.
        constraint: Optional version requirement.
    """

    name: str
    constraint: VersionConstraint | None = None

    def __post_init__(self) -> None:
        """Validate target data after initialization."""
        if not self.name:
            msg = "Package name cannot be empty"
            raise ValueError(msg)

    def __str__(self) -> str:
        if self.constraint is None:
            return self.name
        return f"{self.name}{self.constraint}"

    @classmethod
    def parse(cls, spec: str) -> PackageTarget:
        """Parse a dependency string such as ``python>=3.11``.

        Args:
            spec: Name with optional operator and version.

        Returns:
            PackageTarget for the string.

        Raises:
            ValueError: If the string has no package name.
        """
        spec = spec.strip()
        match = _CONSTRAINT_PATTERN.match(spec)
        if match is None:
            msg = f"Invalid package specification: {spec!r}"
            raise ValueError(msg)

        name = match.group("name").strip()
        operator = match.group("op")
        if operator is None:
            return cls(name=name)
        return cls(
            name=name,
            constraint=VersionConstraint(operator=operator, version=match.group("version").strip()),
        )


def strip_constraint(spec: str) -> str:
    """Return the bare name of a dependency or provides string."""
    return PackageTarget.parse(spec).name


@dataclass(frozen=True, slots=True)
class InstalledPackage:
    """A package present in the local pacman database.

    Attributes:
        name: Package name.
        version: Installed version.
        explicit: True if explicitly installed, False if installed as a dependency.
        depends: Dependency strings (may carry version constraints).
        provides: Provided names (may carry versions).
        optdepends: Optional dependency names.
    """

    name: str
    version: str
    explicit: bool
    depends: tuple[str, ...] = field(default=())
    provides: tuple[str, ...] = field(default=())
    optdepends: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        """Validate package data after initialization."""
        if not self.name:
            msg = "Package name cannot be empty"
            raise ValueError(msg)
        if not self.version:
            msg = "Package version cannot be empty"
            raise ValueError(msg)

    @property
    def dependency_names(self) -> frozenset[str]:
        """Bare names of all hard dependencies."""
        return frozenset(strip_constraint(dep) for dep in self.depends)

    @property
    def provided_names(self) -> frozenset[str]:
        """Bare names this package satisfies, including its own."""
        return frozenset({self.name, *(strip_constraint(p) for p in self.provides)})


VCS_SUFFIXES: tuple[str, ...] = ("-git", "-svn", "-hg", "-bzr", "-darcs", "-cvs", "-fossil")


def is_vcs_package(name: str) -> bool:
    """Check whether a package builds from a version-control head.

    Such packages have perpetually changing versions that cannot be
    compared meaningfully against the AUR.
    """
    return name.endswith(VCS_SUFFIXES)
