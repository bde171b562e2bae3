"""Dependency graph models.

A resolved dependency graph is an arena of nodes keyed by package name.
Nodes refer to their children by name, so a package reached through
several parents is stored once and shared.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from aurctl.models.package import VersionConstraint


class DependencySource(str, Enum):
    """Where a dependency is satisfied from.

    Attributes:
        REPO: A package of that exact name exists in the sync databases.
        AUR: Only the AUR has it; it must be built.
        VIRTUAL_PROVIDED: A differently named repo package provides it.
    """

    REPO = "repo"
    AUR = "aur"
    VIRTUAL_PROVIDED = "virtual"


@dataclass(frozen=True, slots=True)
class DependencyNode:
    """One package in a resolved dependency graph.

    Attributes:
        name: Package name as requested or depended upon.
        source: Where the package comes from.
        constraint: Strictest version constraint seen when first resolved.
        children: Names of dependencies needing work, in declaration order.
        version: AUR version (AUR nodes only).
        package_base: AUR package base, the unit that is cloned and built.
        provider: Concrete repo package for virtual names.
    """

    name: str
    source: DependencySource
    constraint: VersionConstraint | None = None
    children: tuple[str, ...] = field(default=())
    version: str | None = None
    package_base: str | None = None
    provider: str | None = None

    @property
    def is_aur(self) -> bool:
        """Check if this node has to be built from the AUR."""
        return self.source == DependencySource.AUR

    @property
    def install_name(self) -> str:
        """Name handed to pacman when installing from the repositories."""
        return self.provider or self.name

    @property
    def base(self) -> str:
        """Package base, falling back to the package name."""
        return self.package_base or self.name
