"""Unit tests for the config commands."""

from pathlib import Path

from typer.testing import CliRunner

from aurctl.cli.main import app

runner = CliRunner()


class TestConfigCommands:
    """Tests for aurctl config."""

    def test_path(self, settings_env: Path) -> None:
        result = runner.invoke(app, ["config", "path"])
        assert result.exit_code == 0
        assert result.stdout.strip() == str(settings_env)

    def test_show(self, settings_env: Path, cache_dir: Path) -> None:
        """Effective settings are printed as TOML."""
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "[aur]" in result.stdout
        assert str(cache_dir) in result.stdout

    def test_init_refuses_to_overwrite(self, settings_env: Path) -> None:
        result = runner.invoke(app, ["config", "init"])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_init_force(self, settings_env: Path) -> None:
        result = runner.invoke(app, ["config", "init", "--force"])
        assert result.exit_code == 0
        assert "/var/cache/pacman/pkg" in settings_env.read_text()

    def test_invalid_settings(self, settings_env: Path) -> None:
        settings_env.write_text("[aur]\njobs = -1\n")
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 1
        assert "Invalid settings" in result.output
