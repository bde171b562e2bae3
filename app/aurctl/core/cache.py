"""Management of the pacman package cache.

The cache is a flat directory of package tarballs named
``<name>-<pkgver>-<pkgrel>-<arch>.pkg.tar.<ext>``. Detached signatures
(``.sig``) travel with their tarball and are never listed on their own.
"""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Iterable
from pathlib import Path

from aurctl.core.version import version_key
from aurctl.models.snapshot import CacheEntry, Snapshot
from aurctl.pacman.database import PacmanDatabase

logger = logging.getLogger(__name__)

# Version and arch contain no hyphens, so the greedy name takes the rest
_PACKAGE_FILE_PATTERN = re.compile(
    r"^(?P<name>.+)-(?P<version>[^-]+-[^-]+)-(?P<arch>[^-]+)\.pkg\.tar(?:\.[a-z0-9]+)?$"
)


def parse_package_filename(filename: str) -> tuple[str, str] | None:
    """Extract (name, version) from a package file name.

    Returns:
        The pair, or None for anything that is not a package tarball.
    """
    match = _PACKAGE_FILE_PATTERN.match(filename)
    if match is None:
        return None
    return match.group("name"), match.group("version")


class CacheManager:
    """Lists, verifies and prunes cached package tarballs.

    All deleting operations accept ``dry_run`` and return the entries
    they removed (or would remove).
    """

    def __init__(self, cache_dir: Path, database: PacmanDatabase | None = None) -> None:
        self._cache_dir = cache_dir
        self._database = database or PacmanDatabase()

    @property
    def cache_dir(self) -> Path:
        """The cache directory."""
        return self._cache_dir

    def entries(self, verify: bool = False) -> list[CacheEntry]:
        """All cached package tarballs, by name then ascending version.

        Args:
            verify: Check every tarball with ``pacman -Qp``; entries whose
                contents do not match their file name are marked invalid.
        """
        if not self._cache_dir.is_dir():
            logger.warning("Package cache directory not found: %s", self._cache_dir)
            return []

        entries: list[CacheEntry] = []
        for path in self._cache_dir.iterdir():
            if path.name.endswith(".sig") or not path.is_file():
                continue
            parsed = parse_package_filename(path.name)
            if parsed is None:
                logger.debug("Ignoring non-package file in cache: %s", path.name)
                continue
            name, version = parsed
            valid = True
            if verify:
                valid = self._database.package_file_info(path) == (name, version)
                if not valid:
                    logger.debug("Cache entry failed verification: %s", path.name)
            entries.append(
                CacheEntry(package_name=name, version=version, file_path=path, valid=valid)
            )

        entries.sort(key=lambda e: (e.package_name, version_key(e.version)))
        return entries

    def by_name(self, entries: Iterable[CacheEntry] | None = None) -> dict[str, list[CacheEntry]]:
        """Group entries by package name, oldest version first."""
        grouped: dict[str, list[CacheEntry]] = {}
        for entry in entries if entries is not None else self.entries():
            grouped.setdefault(entry.package_name, []).append(entry)
        for versions in grouped.values():
            versions.sort(key=lambda e: version_key(e.version))
        return grouped

    def versions_of(self, name: str) -> list[CacheEntry]:
        """Cached versions of one package, newest first (for downgrades)."""
        return list(reversed(self.by_name().get(name, [])))

    def find(self, name: str, version: str) -> CacheEntry | None:
        """The cached tarball of an exact version, if any."""
        for entry in self.by_name().get(name, []):
            if entry.version == version:
                return entry
        return None

    def search(self, term: str) -> list[CacheEntry]:
        """Entries whose package name contains ``term`` (case-insensitive)."""
        needle = term.lower()
        return [e for e in self.entries() if needle in e.package_name.lower()]

    def info(self, names: Iterable[str]) -> dict[str, list[CacheEntry]]:
        """Cached versions of each requested package, newest first."""
        grouped = self.by_name()
        return {name: list(reversed(grouped.get(name, []))) for name in names}

    def missing(self) -> list[tuple[str, str]]:
        """Installed (name, version) pairs that have no tarball in the cache."""
        cached = {e.key for e in self.entries()}
        installed = self._database.versions()
        return sorted(pair for pair in installed.items() if pair not in cached)

    def clean(self, keep_latest: int, dry_run: bool = False) -> list[CacheEntry]:
        """Keep only the newest ``keep_latest`` versions of each package.

        Args:
            keep_latest: Versions to keep per name; 0 deletes everything.
            dry_run: Report without deleting.

        Returns:
            The entries removed.

        Raises:
            ValueError: If keep_latest is negative.
            OSError: If a tarball cannot be deleted.
        """
        if keep_latest < 0:
            msg = "Number of versions to keep cannot be negative"
            raise ValueError(msg)

        doomed: list[CacheEntry] = []
        for versions in self.by_name().values():
            cutoff = len(versions) - keep_latest
            doomed.extend(versions[: max(cutoff, 0)])
        return self._delete(doomed, dry_run)

    def clean_unsaved(
        self, snapshots: Iterable[Snapshot], dry_run: bool = False
    ) -> list[CacheEntry]:
        """Delete tarballs that no snapshot refers to.

        Raises:
            OSError: If a tarball cannot be deleted.
        """
        saved: set[tuple[str, str]] = set()
        for snapshot in snapshots:
            saved.update(snapshot.entries)
        return self._delete([e for e in self.entries() if e.key not in saved], dry_run)

    def clean_invalid(self, dry_run: bool = False) -> list[CacheEntry]:
        """Delete tarballs that fail verification.

        Raises:
            OSError: If a tarball cannot be deleted.
        """
        return self._delete([e for e in self.entries(verify=True) if not e.valid], dry_run)

    def backup_to(self, target: Path, dry_run: bool = False) -> list[Path]:
        """Copy the cache (tarballs and signatures) into another directory.

        Files already present in the target are left alone.

        Returns:
            Paths of the copies made.

        Raises:
            OSError: If the target cannot be created or written.
        """
        copied: list[Path] = []
        if not dry_run:
            target.mkdir(parents=True, exist_ok=True)
        for entry in self.entries():
            for source in (entry.file_path, _signature(entry.file_path)):
                destination = target / source.name
                if not source.exists() or destination.exists():
                    continue
                if not dry_run:
                    shutil.copy2(source, destination)
                copied.append(destination)
        logger.info("Copied %d file(s) to %s (dry_run=%s)", len(copied), target, dry_run)
        return copied

    def _delete(self, entries: list[CacheEntry], dry_run: bool) -> list[CacheEntry]:
        for entry in entries:
            if dry_run:
                logger.debug("Dry run: would delete %s", entry.file_path.name)
                continue
            entry.file_path.unlink(missing_ok=True)
            _signature(entry.file_path).unlink(missing_ok=True)
        logger.info("Removed %d cached package(s) (dry_run=%s)", len(entries), dry_run)
        return entries


def _signature(path: Path) -> Path:
    return path.with_name(path.name + ".sig")
