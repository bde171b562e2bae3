"""Settings model and settings file I/O.

Settings are stored in ~/.config/aurctl/config.toml. A missing file is
not an error: every field has a default, and a partial file overrides
only the keys it names.

Example config.toml:

    [aur]
    timeout_seconds = 15
    jobs = 4

    [build]
    user = "builder"
    review = "diff"
"""

import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aurctl.core.errors import ConfigError
from aurctl.core.paths import (
    PACMAN_CACHE_DIR,
    get_build_dir,
    get_settings_path,
    get_snapshot_dir,
)
from aurctl.models.build import ReviewMode

DEFAULT_AUR_URL = "https://aur.archlinux.org"


class AurSettings(BaseModel):
    """Connection settings for the AUR metadata service.

    Attributes:
        url: Base URL of the AUR web interface.
        timeout_seconds: Per-request timeout.
        retries: Attempts per read-only request before giving up.
        backoff_seconds: Initial delay between attempts (doubled each retry).
        jobs: Maximum concurrent RPC requests.
    """

    model_config = ConfigDict(extra="forbid")

    url: Annotated[str, Field(description="AUR base URL")] = DEFAULT_AUR_URL
    timeout_seconds: Annotated[float, Field(gt=0, le=300)] = 20.0
    retries: Annotated[int, Field(ge=1, le=10)] = 3
    backoff_seconds: Annotated[float, Field(ge=0, le=60)] = 0.5
    jobs: Annotated[int, Field(ge=1, le=32)] = 4


class BuildSettings(BaseModel):
    """Settings for fetching and building AUR packages.

    Attributes:
        directory: Where one clone per package base is kept.
        user: Unprivileged user for builds when aurctl runs as root.
        jobs: Maximum concurrent builds of independent packages.
        git_timeout_seconds: Timeout for each git operation.
        review: Default review mode before building.
    """

    model_config = ConfigDict(extra="forbid")

    directory: Annotated[Path, Field(default_factory=get_build_dir)]
    user: Annotated[str | None, Field(description="Build user when running as root")] = None
    jobs: Annotated[int, Field(ge=1, le=32)] = 1
    git_timeout_seconds: Annotated[float, Field(gt=0, le=3600)] = 120.0
    review: ReviewMode = ReviewMode.NONE


class CacheSettings(BaseModel):
    """Settings for the pacman package cache."""

    model_config = ConfigDict(extra="forbid")

    directory: Annotated[Path, Field(default=PACMAN_CACHE_DIR)]


class BackupSettings(BaseModel):
    """Settings for package snapshots."""

    model_config = ConfigDict(extra="forbid")

    directory: Annotated[Path, Field(default_factory=get_snapshot_dir)]


class Settings(BaseModel):
    """Complete aurctl settings.

    Attributes:
        aur: AUR connection settings.
        build: Build orchestration settings.
        cache: Package cache settings.
        backup: Snapshot settings.
    """

    model_config = ConfigDict(extra="forbid")

    aur: Annotated[AurSettings, Field(default_factory=AurSettings)]
    build: Annotated[BuildSettings, Field(default_factory=BuildSettings)]
    cache: Annotated[CacheSettings, Field(default_factory=CacheSettings)]
    backup: Annotated[BackupSettings, Field(default_factory=BackupSettings)]


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from a TOML file, falling back to defaults.

    Args:
        path: Path to the settings file. If None, uses the default path.

    Returns:
        Validated Settings object.

    Raises:
        ConfigError: If the file exists but cannot be read, parsed or validated.
    """
    settings_path = path or get_settings_path()

    if not settings_path.exists():
        return Settings()

    try:
        with open(settings_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax in {settings_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read settings: {e}") from e

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {settings_path}: {e}") from e


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Save settings to a TOML file atomically.

    Args:
        settings: The Settings object to save.
        path: Destination path. If None, uses the default path.

    Returns:
        Path where the settings were saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    settings_path = path or get_settings_path()
    settings_path.parent.mkdir(parents=True, exist_ok=True)

    data = settings.model_dump(mode="json", exclude_none=True)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=settings_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(settings_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write settings: {e}") from e

    return settings_path
