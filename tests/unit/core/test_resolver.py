"""Unit tests for the dependency resolver.

The AUR and the pacman database are replaced by in-memory fakes.
"""

from collections.abc import Iterable

import pytest

from aurctl.aur.client import LookupResult
from aurctl.aur.models import PackageMetadata
from aurctl.core.errors import CyclicDependencyError, UnknownPackageError, VersionMismatchError
from aurctl.core.resolver import Resolver
from aurctl.models.dependency import DependencySource
from aurctl.models.package import strip_constraint


class FakeAur:
    """AUR with a fixed set of packages; records every lookup."""

    def __init__(self, packages: dict[str, dict[str, object]]) -> None:
        self.packages = {
            name: PackageMetadata.model_validate({"Name": name, "Version": "1.0-1", **fields})
            for name, fields in packages.items()
        }
        self.lookups: list[list[str]] = []

    def lookup(self, names: Iterable[str]) -> LookupResult:
        names = list(names)
        self.lookups.append(names)
        found = {n: self.packages[n] for n in names if n in self.packages}
        return LookupResult(found=found, missing=tuple(n for n in names if n not in found))


class FakeDatabase:
    """Sync databases and an installed set."""

    def __init__(
        self,
        repo: Iterable[str] = (),
        virtual: dict[str, str] | None = None,
        installed: Iterable[str] = (),
    ) -> None:
        self.repo = set(repo)
        self.virtual = virtual or {}
        self.installed = set(installed)

    def deptest(self, dependencies: Iterable[str]) -> set[str]:
        return {d for d in dependencies if strip_constraint(d) not in self.installed}

    def repo_provider(self, dependency: str) -> str | None:
        if dependency in self.repo:
            return dependency
        return self.virtual.get(dependency)


def make_resolver(
    aur: dict[str, dict[str, object]], database: FakeDatabase | None = None
) -> tuple[Resolver, FakeAur]:
    fake_aur = FakeAur(aur)
    return Resolver(fake_aur, database or FakeDatabase()), fake_aur  # type: ignore[arg-type]


class TestResolve:
    """Tests for Resolver.resolve."""

    def test_aur_chain_with_repo_leaf(self) -> None:
        """A -> B (AUR) -> C (repo) builds B before A and installs C first."""
        resolver, _ = make_resolver(
            {"A": {"Depends": ["B"]}, "B": {"Depends": ["C"]}},
            FakeDatabase(repo=["C"]),
        )
        resolution = resolver.resolve(["A"])

        assert resolution.success
        assert resolution.roots == ("A",)
        assert [n.name for n in resolution.build_plan()] == ["B", "A"]
        assert [n.name for n in resolution.repo_dependencies()] == ["C"]
        assert resolution.nodes["C"].source == DependencySource.REPO

    def test_satisfied_dependencies_have_no_node(self) -> None:
        """Installed dependencies need no work."""
        resolver, _ = make_resolver(
            {"A": {"Depends": ["glibc", "B"]}, "B": {}},
            FakeDatabase(repo=["glibc"], installed=["glibc"]),
        )
        resolution = resolver.resolve(["A"])

        assert "glibc" not in resolution.nodes
        assert resolution.nodes["A"].children == ("B",)

    def test_virtual_dependency(self) -> None:
        """A name provided by another repo package is recorded with its provider."""
        resolver, _ = make_resolver(
            {"A": {"Depends": ["sh"]}}, FakeDatabase(virtual={"sh": "bash"})
        )
        node = resolver.resolve(["A"]).nodes["sh"]

        assert node.source == DependencySource.VIRTUAL_PROVIDED
        assert node.provider == "bash"
        assert node.install_name == "bash"

    def test_make_and_check_dependencies_are_followed(self) -> None:
        """Build-time dependencies are part of the graph."""
        resolver, _ = make_resolver(
            {"A": {"MakeDepends": ["M"], "CheckDepends": ["K"]}, "M": {}, "K": {}}
        )
        assert [n.name for n in resolver.resolve(["A"]).build_plan()] == ["M", "K", "A"]

    def test_diamond_is_resolved_once(self) -> None:
        """Shared dependencies get one node and are looked up once."""
        resolver, aur = make_resolver(
            {
                "A": {"Depends": ["B", "C"]},
                "B": {"Depends": ["D"]},
                "C": {"Depends": ["D"]},
                "D": {},
            }
        )
        resolution = resolver.resolve(["A"])

        assert [n.name for n in resolution.build_plan()] == ["D", "B", "C", "A"]
        looked_up = [name for batch in aur.lookups for name in batch]
        assert sorted(looked_up) == ["A", "B", "C", "D"]

    def test_children_are_looked_up_in_one_batch(self) -> None:
        """Siblings share one AUR request."""
        resolver, aur = make_resolver({"A": {"Depends": ["B", "C"]}, "B": {}, "C": {}})
        resolver.resolve(["A"])
        assert aur.lookups == [["A"], ["B", "C"]]

    def test_plan_has_no_forward_references(self) -> None:
        """Every AUR child precedes its parent in the plan."""
        resolver, _ = make_resolver(
            {
                "top": {"Depends": ["mid1", "mid2", "repo1"]},
                "mid1": {"Depends": ["leaf"]},
                "mid2": {"Depends": ["leaf", "mid1"]},
                "leaf": {},
                "other": {"Depends": ["mid2"]},
            },
            FakeDatabase(repo=["repo1"]),
        )
        resolution = resolver.resolve(["top", "other"])
        plan = resolution.build_plan()
        position = {node.name: index for index, node in enumerate(plan)}

        for node in plan:
            for child in node.children:
                if resolution.nodes[child].is_aur:
                    assert position[child] < position[node.name]

    def test_duplicate_targets(self) -> None:
        """A target named twice resolves once."""
        resolver, _ = make_resolver({"A": {}})
        resolution = resolver.resolve(["A", "A>=1.0"])
        assert resolution.roots == ("A",)

    def test_repo_target(self) -> None:
        """Targets in the repositories are not built."""
        resolver, aur = make_resolver({}, FakeDatabase(repo=["vim"]))
        resolution = resolver.resolve(["vim"])

        assert resolution.build_plan() == ()
        assert [n.name for n in resolution.repo_dependencies()] == ["vim"]
        assert aur.lookups == []

    def test_force_aur_applies_to_targets_only(self) -> None:
        """--aur takes the target from the AUR but leaves dependencies alone."""
        resolver, _ = make_resolver(
            {"vim": {"Depends": ["ncurses"]}}, FakeDatabase(repo=["vim", "ncurses"])
        )
        resolution = resolver.resolve(["vim"], force_aur=True)

        assert resolution.nodes["vim"].is_aur
        assert resolution.nodes["ncurses"].source == DependencySource.REPO

    @pytest.mark.parametrize("order", [["A", "B"], ["B", "A"]])
    def test_force_aur_target_reached_as_dependency(self, order: list[str]) -> None:
        """A forced target is taken from the AUR even when another target needs it first."""
        resolver, _ = make_resolver(
            {"A": {"Depends": ["B"]}, "B": {}}, FakeDatabase(repo=["B"])
        )
        resolution = resolver.resolve(order, force_aur=True)

        assert resolution.success
        assert resolution.nodes["B"].is_aur
        assert [n.name for n in resolution.build_plan()] == ["B", "A"]


class TestResolutionErrors:
    """Tests for per-target failures."""

    def test_unknown_target(self) -> None:
        """Unknown names fail their own target only."""
        resolver, _ = make_resolver({"A": {}})
        resolution = resolver.resolve(["nope", "A"])

        assert resolution.roots == ("A",)
        assert isinstance(resolution.errors["nope"], UnknownPackageError)
        assert not resolution.success

    def test_unknown_dependency_names_parent(self) -> None:
        """The error says who needed the missing package."""
        resolver, _ = make_resolver({"A": {"Depends": ["ghost"]}})
        error = resolver.resolve(["A"]).errors["A"]

        assert isinstance(error, UnknownPackageError)
        assert error.name == "ghost"
        assert error.required_by == "A"

    def test_cycle_fails_only_affected_target(self) -> None:
        """A cycle fails its target; an independent sibling still resolves."""
        resolver, _ = make_resolver(
            {"A": {"Depends": ["B"]}, "B": {"Depends": ["A"]}, "S": {}}
        )
        resolution = resolver.resolve(["A", "S"])

        assert resolution.roots == ("S",)
        error = resolution.errors["A"]
        assert isinstance(error, CyclicDependencyError)
        assert error.cycle == ["A", "B", "A"]
        assert [n.name for n in resolution.build_plan()] == ["S"]

    def test_failed_dependency_is_memoized(self) -> None:
        """Two targets sharing a broken dependency both fail, with one lookup."""
        resolver, aur = make_resolver({"A": {"Depends": ["ghost"]}, "B": {"Depends": ["ghost"]}})
        resolution = resolver.resolve(["A", "B"])

        assert set(resolution.errors) == {"A", "B"}
        looked_up = [name for batch in aur.lookups for name in batch]
        assert looked_up.count("ghost") == 1

    def test_version_constraint_on_target(self) -> None:
        """Constraints the AUR version cannot meet are errors."""
        resolver, _ = make_resolver({"A": {}})
        error = resolver.resolve(["A>=2.0"]).errors["A"]

        assert isinstance(error, VersionMismatchError)
        assert error.available == "1.0-1"

    def test_version_constraint_on_existing_node(self) -> None:
        """A stricter constraint met later is still checked."""
        resolver, _ = make_resolver({"A": {"Depends": ["B>=2"]}, "B": {}})
        resolution = resolver.resolve(["B", "A"])

        assert resolution.roots == ("B",)
        assert isinstance(resolution.errors["A"], VersionMismatchError)

    @pytest.mark.parametrize("spec", ["A>=1.0", "A=1.0-1", "A<2"])
    def test_satisfied_constraints(self, spec: str) -> None:
        """Constraints the AUR version meets resolve."""
        resolver, _ = make_resolver({"A": {}})
        assert resolver.resolve([spec]).success

    @pytest.mark.parametrize("order", [["A", "B"], ["B", "A"]])
    def test_constraint_failure_spares_unconstrained_sibling(self, order: list[str]) -> None:
        """Only the target asking for an unavailable version fails, in either order."""
        resolver, _ = make_resolver(
            {"A": {"Depends": ["X>=2"]}, "B": {"Depends": ["X"]}, "X": {}}
        )
        resolution = resolver.resolve(order)

        assert resolution.roots == ("B",)
        assert set(resolution.errors) == {"A"}
        assert isinstance(resolution.errors["A"], VersionMismatchError)
        assert [n.name for n in resolution.build_plan()] == ["X", "B"]
