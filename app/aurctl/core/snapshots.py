"""Snapshot storage and restore planning.

A snapshot is one JSON file per backup in the snapshot directory, named
by its UTC timestamp. Files are created exclusively and never rewritten.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from aurctl.core.cache import CacheManager
from aurctl.core.errors import SnapshotError
from aurctl.models.action import Action, ActionType
from aurctl.models.snapshot import Snapshot, create_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RestorePlan:
    """Actions that return the system to a snapshot.

    Attributes:
        actions: Installs, reinstalls from cache and removals.
        unavailable: (name, version) pairs with no tarball to restore from.
    """

    actions: tuple[Action, ...] = ()
    unavailable: tuple[tuple[str, str], ...] = ()

    def _of(self, action_type: ActionType) -> list[Action]:
        return [a for a in self.actions if a.action_type == action_type]

    @property
    def install(self) -> list[Action]:
        """Packages installed from the repositories."""
        return self._of(ActionType.INSTALL)

    @property
    def reinstall(self) -> list[Action]:
        """Packages installed from cached tarballs at the snapshot's version."""
        return self._of(ActionType.REINSTALL)

    @property
    def remove(self) -> list[Action]:
        """Explicit packages not in the snapshot."""
        return self._of(ActionType.REMOVE)

    @property
    def is_empty(self) -> bool:
        """Check if there is nothing to do or report."""
        return not self.actions and not self.unavailable


class SnapshotStore:
    """Reads and writes snapshots in one directory."""

    def __init__(self, snapshot_dir: Path) -> None:
        self._dir = snapshot_dir

    @property
    def directory(self) -> Path:
        """The snapshot directory."""
        return self._dir

    def backup(self, explicit: Mapping[str, str], pinned: bool = False) -> Snapshot:
        """Record the explicitly installed packages.

        Args:
            explicit: Explicit package name to installed version.
            pinned: Protect the snapshot from cleaning.

        Returns:
            The stored snapshot.

        Raises:
            SnapshotError: If the file exists already or cannot be written.
        """
        snapshot = create_snapshot(dict(explicit), pinned=pinned)
        path = self._dir / snapshot.filename
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            with open(path, "x", encoding="utf-8") as f:
                f.write(snapshot.to_json())
        except FileExistsError as e:
            raise SnapshotError(f"Snapshot already exists: {path}") from e
        except OSError as e:
            raise SnapshotError(f"Failed to write snapshot: {e}") from e

        logger.info("Stored snapshot of %d package(s) in %s", len(snapshot.packages), path)
        return snapshot

    def list_snapshots(self) -> list[Snapshot]:
        """All readable snapshots, newest first.

        Corrupt files are skipped with a warning.
        """
        return [snapshot for _, snapshot in self._load_all()]

    def latest(self) -> Snapshot | None:
        """The newest snapshot, if any."""
        snapshots = self.list_snapshots()
        return snapshots[0] if snapshots else None

    def _load_all(self) -> list[tuple[Path, Snapshot]]:
        if not self._dir.is_dir():
            return []

        loaded: list[tuple[Path, Snapshot]] = []
        for path in self._dir.glob("*.json"):
            try:
                snapshot = Snapshot.from_json(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable snapshot %s: %s", path.name, e)
                continue
            loaded.append((path, snapshot))

        loaded.sort(key=lambda item: item[1].timestamp, reverse=True)
        return loaded

    def restore_plan(
        self,
        snapshot: Snapshot,
        installed: Mapping[str, str],
        explicit: Iterable[str],
        cache: CacheManager,
        remove_extras: bool = True,
    ) -> RestorePlan:
        """Plan the actions that bring the system back to ``snapshot``.

        Missing packages are installed, from the cache at the recorded
        version when possible. Packages at another version are reinstalled
        from the cache; without a tarball they are reported unavailable.

        Args:
            snapshot: Snapshot to restore.
            installed: Every installed package name to version.
            explicit: Names of explicitly installed packages.
            cache: Package cache to restore versions from.
            remove_extras: Remove explicit packages absent from the snapshot.

        Returns:
            The plan; empty if the system already matches.
        """
        actions: list[Action] = []
        unavailable: list[tuple[str, str]] = []

        for name, version in sorted(snapshot.packages.items()):
            current = installed.get(name)
            if current == version:
                continue
            entry = cache.find(name, version)
            if entry is not None:
                actions.append(
                    Action(
                        action_type=ActionType.REINSTALL,
                        package=name,
                        version=version,
                        path=entry.file_path,
                        reason=f"installed: {current}" if current else "not installed",
                    )
                )
            elif current is None:
                actions.append(
                    Action(action_type=ActionType.INSTALL, package=name, version=version)
                )
            else:
                unavailable.append((name, version))

        if remove_extras:
            for name in sorted(set(explicit) - set(snapshot.packages)):
                actions.append(
                    Action(action_type=ActionType.REMOVE, package=name, reason="not in snapshot")
                )

        return RestorePlan(actions=tuple(actions), unavailable=tuple(unavailable))

    def clean(self, cache: CacheManager, dry_run: bool = False) -> list[Snapshot]:
        """Delete unpinned snapshots that reference tarballs no longer cached.

        Returns:
            The snapshots removed (or that would be).

        Raises:
            SnapshotError: If a snapshot file cannot be deleted.
        """
        cached = {entry.key for entry in cache.entries()}
        removed: list[Snapshot] = []
        for path, snapshot in self._load_all():
            if snapshot.pinned or snapshot.entries <= cached:
                continue
            if not dry_run:
                try:
                    path.unlink()
                except OSError as e:
                    raise SnapshotError(f"Failed to delete snapshot {path.name}: {e}") from e
            removed.append(snapshot)

        logger.info("Removed %d snapshot(s) (dry_run=%s)", len(removed), dry_run)
        return removed
