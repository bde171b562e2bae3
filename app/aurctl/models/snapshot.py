"""Snapshot and cache entry models.

A snapshot records the explicitly installed package set at one point in
time. Snapshots are written once and never modified; they can only be
deleted as a whole.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Point-in-time record of explicitly installed packages.

    Attributes:
        timestamp: When the snapshot was taken (timezone-aware).
        packages: Package name to installed version.
        pinned: Pinned snapshots are never removed by cleaning.
    """

    timestamp: datetime
    packages: dict[str, str] = field(default_factory=lambda: {})
    pinned: bool = False

    def __post_init__(self) -> None:
        """Validate snapshot data after initialization."""
        if self.timestamp.tzinfo is None:
            msg = "Snapshot timestamp must be timezone-aware"
            raise ValueError(msg)

    @property
    def filename(self) -> str:
        """File name this snapshot is stored under."""
        return self.timestamp.strftime("%Y-%m-%dT%H-%M-%S.%fZ") + ".json"

    @property
    def entries(self) -> frozenset[tuple[str, str]]:
        """The (name, version) pairs recorded."""
        return frozenset(self.packages.items())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "time": self.timestamp.isoformat(),
            "pinned": self.pinned,
            "packages": dict(sorted(self.packages.items())),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If the timestamp or package table is invalid.
        """
        packages = data["packages"]
        if not isinstance(packages, dict):
            msg = "Snapshot 'packages' must be a table of name to version"
            raise ValueError(msg)
        return cls(
            timestamp=datetime.fromisoformat(data["time"]),
            packages={str(k): str(v) for k, v in packages.items()},
            pinned=bool(data.get("pinned", False)),
        )

    def to_json(self) -> str:
        """Serialize to stable, human-readable JSON."""
        return json.dumps(self.to_dict(), indent=2) + "\n"

    @classmethod
    def from_json(cls, text: str) -> Snapshot:
        """Deserialize from JSON text.

        Raises:
            json.JSONDecodeError: If text is not valid JSON.
            KeyError: If required fields are missing.
            ValueError: If data is invalid.
        """
        return cls.from_dict(json.loads(text))


def create_snapshot(packages: dict[str, str], pinned: bool = False) -> Snapshot:
    """Create a snapshot of the given package set stamped with the current time."""
    return Snapshot(timestamp=datetime.now(UTC), packages=dict(packages), pinned=pinned)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One package tarball in the pacman cache.

    Attributes:
        package_name: Package name parsed from the file name.
        version: Full version (``[epoch:]pkgver-pkgrel``).
        file_path: Location of the tarball.
        valid: False if the tarball failed its integrity check.
    """

    package_name: str
    version: str
    file_path: Path
    valid: bool = True

    @property
    def key(self) -> tuple[str, str]:
        """The (name, version) pair identifying this entry."""
        return (self.package_name, self.version)
