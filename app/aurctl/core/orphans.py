"""Orphan detection and removal.

An orphan is a package installed as a dependency that no installed
package depends on any more, by name or by a name it provides.
"""

import logging
from collections.abc import Iterable, Sequence

from aurctl.core.errors import AurctlError
from aurctl.models.package import InstalledPackage
from aurctl.pacman.database import PacmanDatabase
from aurctl.pacman.operator import PacmanOperator

logger = logging.getLogger(__name__)


def _required_names(packages: Iterable[InstalledPackage]) -> set[str]:
    required: set[str] = set()
    for package in packages:
        required.update(package.dependency_names - {package.name})
    return required


def find_orphans(packages: Iterable[InstalledPackage]) -> list[str]:
    """Names of non-explicit packages nothing depends on, sorted."""
    installed = list(packages)
    required = _required_names(installed)
    return sorted(p.name for p in installed if not p.explicit and not p.provided_names & required)


def prune_orphans(packages: Iterable[InstalledPackage]) -> list[str]:
    """Everything that removing orphans repeatedly would remove.

    Removing orphans can orphan their dependencies, so removal repeats
    until no orphans remain. The result does not depend on removal order.
    """
    remaining = {p.name: p for p in packages}
    removed: list[str] = []
    while True:
        orphans = find_orphans(remaining.values())
        if not orphans:
            return removed
        removed.extend(orphans)
        for name in orphans:
            del remaining[name]


def elderly(packages: Iterable[InstalledPackage]) -> list[str]:
    """Explicitly installed packages that nothing depends on, sorted."""
    installed = list(packages)
    required = _required_names(installed)
    return sorted(p.name for p in installed if p.explicit and not p.provided_names & required)


class OrphanAnalyzer:
    """Finds, adopts and removes orphans on the live system."""

    def __init__(self, database: PacmanDatabase, operator: PacmanOperator) -> None:
        self._database = database
        self._operator = operator

    def orphans(self) -> list[str]:
        """Current orphans."""
        return find_orphans(self._database.installed())

    def elderly(self) -> list[str]:
        """Explicit packages nothing depends on."""
        return elderly(self._database.installed())

    def adopt(self, names: Sequence[str]) -> list[str]:
        """Mark packages as explicitly installed.

        Returns:
            The names adopted.

        Raises:
            AurctlError: If a name is not installed.
            SubprocessError: If pacman fails.
        """
        installed = {p.name for p in self._database.installed()}
        unknown = [n for n in names if n not in installed]
        if unknown:
            raise AurctlError(f"Not installed: {', '.join(unknown)}")
        if names:
            self._operator.mark_explicit(list(names))
        return list(names)

    def abandon(self) -> list[str]:
        """Remove orphans until none remain.

        In dry-run mode nothing is removed and the planned fixed point
        is returned instead.

        Returns:
            Every package removed, in removal order.

        Raises:
            SubprocessError: If pacman fails.
        """
        if self._operator.dry_run:
            return prune_orphans(self._database.installed())

        removed: list[str] = []
        previous: list[str] = []
        while True:
            orphans = self.orphans()
            if not orphans:
                break
            if orphans == previous:
                logger.warning("Orphans unchanged after removal: %s", ", ".join(orphans))
                break
            logger.info("Removing orphans: %s", ", ".join(orphans))
            self._operator.remove(orphans)
            removed.extend(orphans)
            previous = orphans
        return removed
