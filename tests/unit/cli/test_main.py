"""Unit tests for the main CLI application."""

import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from aurctl import __version__
from aurctl.cli.main import app, configure_logging

runner = CliRunner()


class TestMainApp:
    """Tests for global options."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"aurctl version {__version__}" in result.stdout

    def test_help_lists_command_groups(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("aur", "backup", "cache", "orphans", "deps", "pacman", "config"):
            assert command in result.stdout

    def test_invalid_log_level(self) -> None:
        result = runner.invoke(app, ["--log-level", "loud", "config", "path"])
        assert result.exit_code == 2


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_levels(self) -> None:
        assert configure_logging() == logging.WARNING
        assert configure_logging(verbose=True) == logging.DEBUG
        assert configure_logging(quiet=True) == logging.ERROR
        assert configure_logging(verbose=True, level="info") == logging.INFO

    def test_single_handler(self) -> None:
        """Repeated configuration does not stack handlers."""
        configure_logging()
        configure_logging()
        assert len(logging.getLogger("aurctl").handlers) == 1


class TestHomeOptions:
    """Tests for the directory options an elevated re-run passes."""

    def test_config_home_selects_settings(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Settings come from the given directory, not from HOME."""
        for variable in ("XDG_CONFIG_HOME", "XDG_STATE_HOME", "XDG_CACHE_HOME"):
            monkeypatch.delenv(variable, raising=False)
        monkeypatch.setenv("HOME", str(tmp_path / "root"))
        user_config = tmp_path / "user" / ".config"

        result = runner.invoke(app, ["--config-home", str(user_config), "config", "path"])

        assert result.exit_code == 0
        assert result.stdout.strip() == str(user_config / "aurctl" / "config.toml")

    def test_hidden_from_help(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert "--config-home" not in result.stdout
