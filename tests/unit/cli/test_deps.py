"""Unit tests for the deps command."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from aurctl.cli.main import app
from aurctl.models.package import InstalledPackage

runner = CliRunner()


@pytest.fixture
def database(installed_packages: list[InstalledPackage]) -> MagicMock:
    database = MagicMock()
    database.installed.return_value = installed_packages
    database.foreign.return_value = {"app": "1.0-1"}
    with patch("aurctl.cli.commands.deps.get_database", return_value=database):
        yield database


class TestDepsCommand:
    """Tests for aurctl deps."""

    def test_installed_graph(self, settings_env: Path, database: MagicMock) -> None:
        result = runner.invoke(app, ["deps", "tool"])

        assert result.exit_code == 0
        assert result.stdout.startswith("digraph dependencies {")
        assert '"tool" -> "shell";' in result.stdout
        assert '"app"' not in result.stdout

    def test_reverse(self, settings_env: Path, database: MagicMock) -> None:
        result = runner.invoke(app, ["deps", "--reverse", "libfoo"])
        assert '"libfoo" -> "app";' in result.stdout

    def test_not_installed(self, settings_env: Path, database: MagicMock) -> None:
        result = runner.invoke(app, ["deps", "ghost"])
        assert result.exit_code == 1
        assert "Not installed: ghost" in result.output

    def test_output_file(self, settings_env: Path, database: MagicMock, tmp_path: Path) -> None:
        target = tmp_path / "graph.dot"
        result = runner.invoke(app, ["deps", "app", "-o", str(target)])

        assert result.exit_code == 0
        assert '"app" -> "libfoo";' in target.read_text()

    def test_aur_needs_packages(self, settings_env: Path) -> None:
        result = runner.invoke(app, ["deps", "--aur"])
        assert result.exit_code == 1

    def test_aur_rejects_reverse(self, settings_env: Path) -> None:
        result = runner.invoke(app, ["deps", "--aur", "--reverse", "foo"])
        assert result.exit_code == 1
        assert "only apply to installed packages" in result.output
