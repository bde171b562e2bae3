"""XDG-compliant path management for aurctl.

This module provides standardized paths following the XDG Base Directory
Specification for configuration, state, and cache storage.

XDG defaults:
- Config: ~/.config/aurctl/
- State: ~/.local/state/aurctl/
- Cache: ~/.cache/aurctl/

The pacman package cache itself is system-owned and lives outside of
these directories (see ``PACMAN_CACHE_DIR``).
"""

import os
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "aurctl"

# System locations owned by pacman
PACMAN_CACHE_DIR = Path("/var/cache/pacman/pkg")


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/aurctl/ (or XDG_CONFIG_HOME/aurctl/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_state_dir() -> Path:
    """Get the state directory path.

    State data includes package snapshots that should persist between
    runs but is not configuration.

    Returns:
        Path to ~/.local/state/aurctl/ (or XDG_STATE_HOME/aurctl/).
    """
    return _get_xdg_dir("XDG_STATE_HOME", ".local/state")


def get_cache_dir() -> Path:
    """Get the cache directory path.

    Cache data includes AUR build-script clones that can be re-fetched.

    Returns:
        Path to ~/.cache/aurctl/ (or XDG_CACHE_HOME/aurctl/).
    """
    return _get_xdg_dir("XDG_CACHE_HOME", ".cache")


def get_settings_path() -> Path:
    """Get the settings file path.

    Returns:
        Path to ~/.config/aurctl/config.toml.
    """
    return get_config_dir() / "config.toml"


def get_theme_path() -> Path:
    """Get the user theme override path.

    Returns:
        Path to ~/.config/aurctl/theme.toml.
    """
    return get_config_dir() / "theme.toml"


def get_build_dir() -> Path:
    """Get the directory holding one clone per AUR package base.

    Returns:
        Path to ~/.cache/aurctl/packages/.
    """
    return get_cache_dir() / "packages"


def get_snapshot_dir() -> Path:
    """Get the package snapshot directory path.

    Each backup writes one timestamped JSON file into this directory.

    Returns:
        Path to ~/.local/state/aurctl/snapshots/.
    """
    return get_state_dir() / "snapshots"


def ensure_dir(path: Path, name: str) -> Path:
    """Create directory if it doesn't exist.

    Args:
        path: Directory path to create.
        name: Human-readable name for error messages.

    Returns:
        The created/existing directory path.

    Raises:
        RuntimeError: If directory cannot be created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        msg = f"Cannot create {name} directory {path}: Permission denied"
        raise RuntimeError(msg) from e
    except OSError as e:
        msg = f"Cannot create {name} directory {path}: {e}"
        raise RuntimeError(msg) from e
    return path
