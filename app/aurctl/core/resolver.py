"""Dependency resolution for AUR targets.

Turns requested package names into a dependency graph and a build
plan. The graph is an arena of nodes keyed by name: a package needed
by several parents is resolved once and shared.

Resolution of each target is independent. An unknown package, a
version mismatch or a cycle fails only the targets whose dependency
tree contains it; errors are collected and reported together.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from aurctl.aur.client import AurClient
from aurctl.aur.models import PackageMetadata
from aurctl.core.errors import (
    CyclicDependencyError,
    ResolutionError,
    UnknownPackageError,
    VersionMismatchError,
)
from aurctl.models.dependency import DependencyNode, DependencySource
from aurctl.models.package import PackageTarget
from aurctl.pacman.database import PacmanDatabase

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Resolution:
    """Outcome of resolving a set of targets.

    Attributes:
        nodes: The dependency graph, name to node, in resolution order.
        roots: Successfully resolved target names, in request order.
        errors: Failed target to the error that failed it.
    """

    nodes: dict[str, DependencyNode] = field(default_factory=lambda: {})
    roots: tuple[str, ...] = ()
    errors: dict[str, ResolutionError] = field(default_factory=lambda: {})

    @property
    def success(self) -> bool:
        """Check if every target resolved."""
        return not self.errors

    def _walk(self) -> list[DependencyNode]:
        """Post-order walk from the roots; children in declaration order."""
        order: list[DependencyNode] = []
        visited: set[str] = set()

        def visit(name: str) -> None:
            if name in visited:
                return
            visited.add(name)
            node = self.nodes[name]
            for child in node.children:
                visit(child)
            order.append(node)

        for root in self.roots:
            visit(root)
        return order

    def build_plan(self) -> tuple[DependencyNode, ...]:
        """AUR nodes in build order.

        A node never precedes any of its AUR dependencies. Ties are
        broken by first discovery: roots in request order, children in
        declaration order.
        """
        return tuple(node for node in self._walk() if node.is_aur)

    def repo_dependencies(self) -> tuple[DependencyNode, ...]:
        """Repository nodes (exact or virtual) reachable from the roots."""
        return tuple(node for node in self._walk() if not node.is_aur)


class Resolver:
    """Resolves targets against the local system, the repositories and the AUR.

    Example:
        >>> resolver = Resolver(aur_client, PacmanDatabase())
        >>> resolution = resolver.resolve(["yay"])
        >>> [node.name for node in resolution.build_plan()]
    """

    def __init__(self, aur: AurClient, database: PacmanDatabase) -> None:
        self._aur = aur
        self._database = database
        self._reset()

    def _reset(self) -> None:
        self._nodes: dict[str, DependencyNode] = {}
        self._failures: dict[str, ResolutionError] = {}
        self._metadata: dict[str, PackageMetadata] = {}
        self._unknown: set[str] = set()
        self._providers: dict[str, str | None] = {}
        self._forced: set[str] = set()

    def resolve(
        self,
        targets: Sequence[str | PackageTarget],
        force_aur: bool = False,
    ) -> Resolution:
        """Resolve targets into a dependency graph.

        Args:
            targets: Requested packages, as strings (``foo>=1.0``) or targets.
            force_aur: Resolve the requested targets from the AUR even if a
                repository has them, including where another target depends on
                them. Other dependencies are unaffected.

        Returns:
            Resolution with the graph, the resolved roots and per-target errors.

        Raises:
            AurNetworkError: If the AUR cannot be queried.
            SubprocessError: If pacman cannot be queried.
        """
        self._reset()
        unique: dict[str, PackageTarget] = {}
        for spec in targets:
            target = spec if isinstance(spec, PackageTarget) else PackageTarget.parse(spec)
            unique.setdefault(target.name, target)
        parsed = list(unique.values())
        if force_aur:
            self._forced = set(unique)

        # One batched lookup for every target that has to come from the AUR
        self._prefetch(
            [t.name for t in parsed if force_aur or self._repo_provider(t.name) is None]
        )

        roots: list[str] = []
        errors: dict[str, ResolutionError] = {}
        for target in parsed:
            try:
                self._visit(target, ancestors=[])
            except ResolutionError as e:
                logger.debug("Resolution of %s failed: %s", target.name, e)
                errors[target.name] = e
            else:
                roots.append(target.name)

        logger.debug(
            "Resolved %d of %d target(s) into %d node(s)", len(roots), len(parsed), len(self._nodes)
        )
        return Resolution(nodes=dict(self._nodes), roots=tuple(roots), errors=errors)

    def _visit(self, target: PackageTarget, ancestors: list[str]) -> None:
        name = target.name
        if name in ancestors:
            raise CyclicDependencyError([*ancestors[ancestors.index(name) :], name])
        if name in self._failures:
            raise self._failures[name]

        existing = self._nodes.get(name)
        if existing is not None:
            self._check_version(existing, target)
            return

        try:
            node = self._resolve_node(target, ancestors, name in self._forced)
        except ResolutionError as e:
            self._failures[name] = e
            raise
        self._nodes[name] = node
        # Constraints belong to the edge, not the node; a mismatch fails only
        # the dependents that asked for it
        self._check_version(node, target)

    def _resolve_node(
        self,
        target: PackageTarget,
        ancestors: list[str],
        from_aur: bool,
    ) -> DependencyNode:
        name = target.name

        if not from_aur:
            provider = self._repo_provider(name)
            if provider == name:
                return DependencyNode(
                    name=name, source=DependencySource.REPO, constraint=target.constraint
                )
            if provider is not None:
                return DependencyNode(
                    name=name,
                    source=DependencySource.VIRTUAL_PROVIDED,
                    constraint=target.constraint,
                    provider=provider,
                )

        metadata = self._lookup(name)
        if metadata is None:
            raise UnknownPackageError(name, required_by=ancestors[-1] if ancestors else None)

        children = self._resolve_children(metadata, [*ancestors, name])
        return DependencyNode(
            name=name,
            source=DependencySource.AUR,
            constraint=target.constraint,
            children=tuple(children),
            version=metadata.version,
            package_base=metadata.base,
        )

    def _resolve_children(self, metadata: PackageMetadata, ancestors: list[str]) -> list[str]:
        dependencies = list(dict.fromkeys(metadata.build_depends))
        if not dependencies:
            return []

        unsatisfied = self._database.deptest(dependencies)
        targets: dict[str, PackageTarget] = {}
        for dependency in dependencies:
            if dependency not in unsatisfied:
                continue
            child = PackageTarget.parse(dependency)
            targets.setdefault(child.name, child)

        # Batch the AUR lookups of all children before descending
        self._prefetch(
            [
                name
                for name in targets
                if name not in self._nodes
                and name not in self._failures
                and (name in self._forced or self._repo_provider(name) is None)
            ]
        )

        for child in targets.values():
            self._visit(child, ancestors)
        return list(targets)

    @staticmethod
    def _check_version(node: DependencyNode, target: PackageTarget) -> None:
        if not node.is_aur or target.constraint is None or node.version is None:
            return
        if not target.constraint.allows(node.version):
            raise VersionMismatchError(node.name, str(target.constraint), node.version)

    def _repo_provider(self, name: str) -> str | None:
        if name not in self._providers:
            self._providers[name] = self._database.repo_provider(name)
        return self._providers[name]

    def _lookup(self, name: str) -> PackageMetadata | None:
        if name not in self._metadata and name not in self._unknown:
            self._prefetch([name])
        return self._metadata.get(name)

    def _prefetch(self, names: list[str]) -> None:
        pending = [n for n in names if n not in self._metadata and n not in self._unknown]
        if not pending:
            return
        result = self._aur.lookup(pending)
        self._metadata.update(result.found)
        self._unknown.update(result.missing)
