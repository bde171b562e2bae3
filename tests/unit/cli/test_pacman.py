"""Unit tests for the pacman pass-through command."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from aurctl.cli.main import app

runner = CliRunner()


@pytest.fixture
def not_root():
    with (
        patch("aurctl.core.privilege.is_root", return_value=False),
        patch("aurctl.core.privilege.command_exists", return_value=True),
    ):
        yield


class TestPacmanPassthrough:
    """Tests for aurctl pacman."""

    def test_query_is_not_elevated(self, settings_env, not_root) -> None:
        with patch("aurctl.cli.commands.pacman.run_interactive", return_value=0) as run:
            result = runner.invoke(app, ["pacman", "-Qi", "bash"])

        assert result.exit_code == 0
        run.assert_called_once_with(["pacman", "-Qi", "bash"])

    def test_sync_is_elevated(self, settings_env, not_root) -> None:
        with patch("aurctl.cli.commands.pacman.run_interactive", return_value=0) as run:
            runner.invoke(app, ["pacman", "-S", "--needed", "git"])
        run.assert_called_once_with(["sudo", "pacman", "-S", "--needed", "git"])

    def test_sync_search_is_not_elevated(self, settings_env, not_root) -> None:
        with patch("aurctl.cli.commands.pacman.run_interactive", return_value=0) as run:
            runner.invoke(app, ["pacman", "-Ss", "git"])
        run.assert_called_once_with(["pacman", "-Ss", "git"])

    def test_exit_code_is_forwarded(self, settings_env, not_root) -> None:
        with patch("aurctl.cli.commands.pacman.run_interactive", return_value=1):
            result = runner.invoke(app, ["pacman", "-Qi", "ghost"])
        assert result.exit_code == 1

    def test_missing_operation(self, settings_env, not_root) -> None:
        with patch("aurctl.cli.commands.pacman.run_interactive") as run:
            result = runner.invoke(app, ["pacman", "--needed", "git"])
        assert result.exit_code == 1
        assert "Exactly one pacman operation" in result.output
        run.assert_not_called()
