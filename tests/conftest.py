"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

from pathlib import Path

import pytest

from aurctl.models.package import InstalledPackage


@pytest.fixture
def mock_query_info_output() -> str:
    """Sample ``pacman -Qi`` output for two packages."""
    return """Name            : bash
Version         : 5.2.026-2
Description     : The GNU Bourne Again shell
Provides        : sh
Depends On      : readline>=7.0  glibc  ncurses
Optional Deps   : bash-completion: for tab completion
Install Reason  : Explicitly installed

Name            : readline
Version         : 8.2.010-1
Provides        : libreadline.so=8-64
Depends On      : glibc  ncurses  libncursesw.so=6-64
Optional Deps   : None
Install Reason  : Installed as a dependency for another package
"""


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Package cache with several versions of two packages."""
    directory = tmp_path / "pkg"
    directory.mkdir()
    for filename in (
        "foo-1.0-1-x86_64.pkg.tar.zst",
        "foo-1.1-1-x86_64.pkg.tar.zst",
        "foo-1.10-1-x86_64.pkg.tar.zst",
        "foo-1.10-1-x86_64.pkg.tar.zst.sig",
        "bar-baz-2:0.5-3-any.pkg.tar.xz",
        "notes.txt",
    ):
        (directory / filename).write_text("x")
    return directory


@pytest.fixture
def installed_packages() -> list[InstalledPackage]:
    """A small installed system with an orphan chain."""
    return [
        InstalledPackage(name="app", version="1.0-1", explicit=True, depends=("libfoo",)),
        InstalledPackage(name="libfoo", version="2.0-1", explicit=False),
        InstalledPackage(name="leftover", version="1.0-1", explicit=False, depends=("libold>=1",)),
        InstalledPackage(name="libold", version="1.2-1", explicit=False),
        InstalledPackage(
            name="shell", version="5.0-1", explicit=False, provides=("sh=5.0",)
        ),
        InstalledPackage(name="tool", version="3.0-1", explicit=True, depends=("sh",)),
    ]


@pytest.fixture
def settings_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, cache_dir: Path) -> Path:
    """Point the XDG directories into tmp_path and the package cache at cache_dir.

    Returns:
        Path of the settings file.
    """
    for variable in ("XDG_CONFIG_HOME", "XDG_STATE_HOME", "XDG_CACHE_HOME"):
        monkeypatch.setenv(variable, str(tmp_path / variable.lower()))
    path = tmp_path / "xdg_config_home" / "aurctl" / "config.toml"
    path.parent.mkdir(parents=True)
    path.write_text(f'[cache]\ndirectory = "{cache_dir}"\n')
    return path
