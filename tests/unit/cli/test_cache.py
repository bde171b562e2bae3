"""Unit tests for the cache commands."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from aurctl.cli.main import app

runner = CliRunner()


@pytest.fixture
def database() -> MagicMock:
    """Database with foo 1.10-1 installed."""
    database = MagicMock()
    database.versions.return_value = {"foo": "1.10-1", "baz": "3-1"}
    database.explicit.return_value = {"foo": "1.10-1"}
    with patch("aurctl.cli.commands.cache.get_database", return_value=database):
        yield database


@pytest.fixture
def no_reexec():
    with patch("aurctl.cli.commands.cache.reexec_elevated") as mock:
        yield mock


class TestCacheQueries:
    """Tests for the read-only cache commands."""

    def test_list(self, settings_env: Path, database: MagicMock) -> None:
        result = runner.invoke(app, ["cache", "list"])
        assert result.exit_code == 0
        assert "foo-1.10-1-x86_64.pkg.tar.zst" in result.stdout
        assert "bar-baz" in result.stdout
        assert "notes.txt" not in result.stdout

    def test_search_no_match(self, settings_env: Path, database: MagicMock) -> None:
        result = runner.invoke(app, ["cache", "search", "zzz"])
        assert result.exit_code == 1

    def test_missing(self, settings_env: Path, database: MagicMock) -> None:
        """Installed versions without a tarball are listed."""
        result = runner.invoke(app, ["cache", "missing"])
        assert result.exit_code == 0
        assert "baz 3-1" in result.stdout
        assert "foo 1.10-1" not in result.stdout


class TestCacheClean:
    """Tests for aurctl cache clean."""

    def test_keeps_newest(
        self, settings_env: Path, cache_dir: Path, database: MagicMock, no_reexec: MagicMock
    ) -> None:
        result = runner.invoke(app, ["cache", "clean", "1", "--yes"])

        assert result.exit_code == 0
        assert sorted(p.name for p in cache_dir.iterdir()) == [
            "bar-baz-2:0.5-3-any.pkg.tar.xz",
            "foo-1.10-1-x86_64.pkg.tar.zst",
            "foo-1.10-1-x86_64.pkg.tar.zst.sig",
            "notes.txt",
        ]
        no_reexec.assert_called_once()

    def test_dry_run_deletes_nothing(
        self, settings_env: Path, cache_dir: Path, database: MagicMock, no_reexec: MagicMock
    ) -> None:
        before = sorted(cache_dir.iterdir())
        result = runner.invoke(app, ["cache", "clean", "0", "--dry-run"])

        assert result.exit_code == 0
        assert "would be removed" in result.stdout
        assert sorted(cache_dir.iterdir()) == before
        no_reexec.assert_not_called()

    def test_confirmation_declined(
        self, settings_env: Path, cache_dir: Path, database: MagicMock, no_reexec: MagicMock
    ) -> None:
        before = sorted(cache_dir.iterdir())
        result = runner.invoke(app, ["cache", "clean", "0"], input="n\n")

        assert "Aborted" in result.stdout
        assert sorted(cache_dir.iterdir()) == before

    def test_negative_count_rejected(self, settings_env: Path, database: MagicMock) -> None:
        result = runner.invoke(app, ["cache", "clean", "--", "-1"])
        assert result.exit_code == 2

    def test_notsaved_requires_snapshots(
        self, settings_env: Path, database: MagicMock, no_reexec: MagicMock
    ) -> None:
        """Without snapshots every tarball would be unsaved."""
        result = runner.invoke(app, ["cache", "notsaved"])
        assert result.exit_code == 1
        assert "No snapshots" in result.output


class TestCacheDowngrade:
    """Tests for aurctl cache downgrade."""

    @pytest.fixture
    def operator(self):
        operator = MagicMock()
        with patch("aurctl.cli.commands.cache.get_operator", return_value=operator):
            yield operator

    def test_explicit_version(
        self,
        settings_env: Path,
        cache_dir: Path,
        database: MagicMock,
        no_reexec: MagicMock,
        operator: MagicMock,
    ) -> None:
        """The cached tarball is installed, keeping the install reason."""
        result = runner.invoke(app, ["cache", "downgrade", "foo", "1.0-1"])

        assert result.exit_code == 0
        operator.install_files.assert_called_once_with(
            [cache_dir / "foo-1.0-1-x86_64.pkg.tar.zst"], explicit=True
        )

    def test_prompt(
        self,
        settings_env: Path,
        cache_dir: Path,
        database: MagicMock,
        no_reexec: MagicMock,
        operator: MagicMock,
    ) -> None:
        """Candidates are offered newest first, without the installed version."""
        result = runner.invoke(app, ["cache", "downgrade", "foo"], input="1\n")

        assert result.exit_code == 0
        assert "  0) 1.1-1" in result.stdout
        assert "  1) 1.0-1" in result.stdout
        assert "2)" not in result.stdout
        operator.install_files.assert_called_once_with(
            [cache_dir / "foo-1.0-1-x86_64.pkg.tar.zst"], explicit=True
        )

    def test_version_not_cached(
        self, settings_env: Path, database: MagicMock, no_reexec: MagicMock, operator: MagicMock
    ) -> None:
        result = runner.invoke(app, ["cache", "downgrade", "foo", "0.1-1"])
        assert result.exit_code == 1
        assert "not in the package cache" in result.output
        operator.install_files.assert_not_called()

    def test_not_installed(
        self, settings_env: Path, database: MagicMock, no_reexec: MagicMock
    ) -> None:
        result = runner.invoke(app, ["cache", "downgrade", "ghost"])
        assert result.exit_code == 1
        assert "ghost is not installed" in result.output
