"""Unit tests for privilege classification and elevation."""

from pathlib import Path
from unittest.mock import patch

import pytest

from aurctl.core.errors import PrivilegeDeniedError
from aurctl.core.privilege import (
    POLICIES,
    Elevator,
    Subcommand,
    classify_pacman_args,
    needs_sudo,
    normalize_flag,
    reexec_elevated,
    translate_flags,
)


class TestNeedsSudo:
    """Tests for the needs_sudo decision table."""

    def test_remove_with_print_is_read_only(self) -> None:
        """remove --print only prints the transaction."""
        assert needs_sudo(Subcommand.REMOVE, {"print"}) is False

    def test_bare_remove_needs_root(self) -> None:
        """A plain remove modifies the system."""
        assert needs_sudo(Subcommand.REMOVE, set()) is True

    def test_sync_search_is_read_only(self) -> None:
        """sync --search does not need root."""
        assert needs_sudo(Subcommand.SYNC, {"search"}) is False

    def test_mutating_flag_wins_over_read_only(self) -> None:
        """-Syi still refreshes the databases."""
        assert needs_sudo(Subcommand.SYNC, {"info", "refresh"}) is True

    def test_mutating_flag_on_read_only_base(self) -> None:
        """-D is harmless unless it changes install reasons."""
        assert needs_sudo(Subcommand.DATABASE, set()) is False
        assert needs_sudo(Subcommand.DATABASE, {"asdeps"}) is True

    def test_query_never_needs_root(self) -> None:
        """-Q is always read-only."""
        assert needs_sudo(Subcommand.QUERY, {"info", "print"}) is False

    def test_unknown_flags_are_ignored(self) -> None:
        """Flags outside the table do not change the base decision."""
        assert needs_sudo(Subcommand.UPGRADE, {"needed", "overwrite"}) is True
        assert needs_sudo(Subcommand.DEPS, {"reverse"}) is False

    def test_flag_spelling_is_normalized(self) -> None:
        """Dashes and leading hyphens do not matter."""
        assert needs_sudo(Subcommand.UPGRADE, {"--print"}) is False
        assert needs_sudo(Subcommand.DATABASE, {"--as-explicit"}) is True

    @pytest.mark.parametrize("flag", ["clean", "notsaved", "invalid", "refresh", "downgrade"])
    def test_cache_mutations(self, flag: str) -> None:
        """Cache commands that delete or install need root."""
        assert needs_sudo(Subcommand.CACHE, {flag}) is True

    @pytest.mark.parametrize("flag", ["list", "search", "info", "missing"])
    def test_cache_queries(self, flag: str) -> None:
        """Cache listings do not."""
        assert needs_sudo(Subcommand.CACHE, {flag}) is False

    def test_orphans(self) -> None:
        """Listing orphans is read-only, adopting and abandoning are not."""
        assert needs_sudo(Subcommand.ORPHANS) is False
        assert needs_sudo(Subcommand.ORPHANS, {"adopt"}) is True
        assert needs_sudo(Subcommand.ORPHANS, {"abandon"}) is True

    def test_every_subcommand_has_a_policy(self) -> None:
        """The table is total over Subcommand."""
        assert set(POLICIES) == set(Subcommand)

    def test_or_rule_holds_for_whole_table(self) -> None:
        """Result equals any(mutating) or (base and not any(read_only))."""
        for subcommand, policy in POLICIES.items():
            for flag in sorted(policy.read_only | policy.mutating) + ["other"]:
                flags = {flag}
                expected = bool(flags & policy.mutating) or (
                    policy.base and not flags & policy.read_only
                )
                assert needs_sudo(subcommand, flags) is expected, (subcommand, flag)


class TestNormalizeFlag:
    """Tests for normalize_flag."""

    @pytest.mark.parametrize("raw", ["--asdeps", "--as-deps", "asdeps", "AS_DEPS"])
    def test_spellings(self, raw: str) -> None:
        """All spellings map to one name."""
        assert normalize_flag(raw) == "asdeps"


class TestTranslateFlags:
    """Tests for translate_flags."""

    def test_strips_language_flags(self) -> None:
        """Language switches are aurctl-only."""
        assert translate_flags(["-S", "--german", "foo"]) == ["-S", "foo"]

    def test_strips_log_level_with_value(self) -> None:
        """--log-level consumes its value in both spellings."""
        assert translate_flags(["--log-level", "debug", "-Q"]) == ["-Q"]
        assert translate_flags(["--log-level=debug", "-Q"]) == ["-Q"]

    def test_keeps_pacman_flags(self) -> None:
        """Everything else is forwarded unchanged, in order."""
        args = ["-Syu", "--needed", "--overwrite", "*", "foo"]
        assert translate_flags(args) == args


class TestClassifyPacmanArgs:
    """Tests for classify_pacman_args."""

    def test_combined_short_flags(self) -> None:
        """-Syu is a sync with refresh and sysupgrade."""
        subcommand, flags = classify_pacman_args(["-Syu"])
        assert subcommand == Subcommand.SYNC
        assert flags == {"refresh", "sysupgrade"}

    def test_short_flags_depend_on_operation(self) -> None:
        """-s means search for -S but not for -R."""
        _, sync_flags = classify_pacman_args(["-Ss", "foo"])
        _, remove_flags = classify_pacman_args(["-Rs", "foo"])
        assert "search" in sync_flags
        assert "search" not in remove_flags

    def test_long_operation_and_flags(self) -> None:
        """Long options are normalized."""
        subcommand, flags = classify_pacman_args(["--remove", "--print", "foo"])
        assert subcommand == Subcommand.REMOVE
        assert needs_sudo(subcommand, flags) is False

    def test_arguments_after_double_dash_are_ignored(self) -> None:
        """A package named like a flag is not a flag."""
        subcommand, flags = classify_pacman_args(["-R", "--", "-p"])
        assert subcommand == Subcommand.REMOVE
        assert needs_sudo(subcommand, flags) is True

    @pytest.mark.parametrize("args", [[], ["foo"], ["-S", "-R", "foo"]])
    def test_requires_exactly_one_operation(self, args: list[str]) -> None:
        """No operation or several operations are rejected."""
        with pytest.raises(ValueError, match="Exactly one"):
            classify_pacman_args(args)


class TestElevator:
    """Tests for the Elevator."""

    def test_wrap_prefixes_sudo_when_needed(self) -> None:
        """Mutating commands get the elevation tool."""
        with (
            patch("aurctl.core.privilege.is_root", return_value=False),
            patch("aurctl.core.privilege.command_exists", return_value=True),
        ):
            command = Elevator().wrap(["pacman", "-U", "x.pkg.tar.zst"], Subcommand.UPGRADE)
        assert command == ["sudo", "pacman", "-U", "x.pkg.tar.zst"]

    def test_wrap_leaves_queries_alone(self) -> None:
        """Read-only commands are returned unchanged."""
        with patch("aurctl.core.privilege.is_root", return_value=False):
            command = Elevator().wrap(["pacman", "-Rp", "foo"], Subcommand.REMOVE, ["print"])
        assert command == ["pacman", "-Rp", "foo"]

    def test_wrap_as_root_does_not_prefix(self) -> None:
        """Root needs no elevation."""
        with patch("aurctl.core.privilege.is_root", return_value=True):
            command = Elevator().wrap(["pacman", "-R", "foo"], Subcommand.REMOVE)
        assert command == ["pacman", "-R", "foo"]

    def test_wrap_without_tool_raises(self) -> None:
        """Missing sudo is a privilege error."""
        with (
            patch("aurctl.core.privilege.is_root", return_value=False),
            patch("aurctl.core.privilege.command_exists", return_value=False),
            pytest.raises(PrivilegeDeniedError, match="requires root"),
        ):
            Elevator().wrap(["pacman", "-R", "foo"], Subcommand.REMOVE)

    def test_deescalate_as_user_is_noop(self) -> None:
        """Builds run directly when we are not root."""
        with patch("aurctl.core.privilege.is_root", return_value=False):
            assert Elevator().deescalate(["makepkg"]) == ["makepkg"]

    def test_deescalate_as_root_uses_sudo_user(self) -> None:
        """As root, builds drop to the invoking user."""
        with (
            patch("aurctl.core.privilege.is_root", return_value=True),
            patch("aurctl.core.privilege.command_exists", return_value=True),
            patch.dict("os.environ", {"SUDO_USER": "alice"}),
        ):
            command = Elevator().deescalate(["makepkg", "--force"])
        assert command == ["sudo", "-u", "alice", "--", "makepkg", "--force"]

    def test_configured_build_user_wins(self) -> None:
        """The settings' build user overrides SUDO_USER."""
        with (
            patch("aurctl.core.privilege.is_root", return_value=True),
            patch.dict("os.environ", {"SUDO_USER": "alice"}),
        ):
            assert Elevator(build_user="builder").resolve_build_user() == "builder"

    def test_deescalate_refuses_to_build_as_root(self) -> None:
        """Without a non-root user the build is refused."""
        with (
            patch("aurctl.core.privilege.is_root", return_value=True),
            patch.dict("os.environ", {"SUDO_USER": "root"}),
            pytest.raises(PrivilegeDeniedError, match="Refusing to build as root"),
        ):
            Elevator().deescalate(["makepkg"])


class TestReexecElevated:
    """Tests for reexec_elevated."""

    def test_noop_when_not_needed(self) -> None:
        """Read-only commands never re-execute."""
        with patch("aurctl.core.privilege.os.execvp") as mock_exec:
            reexec_elevated(Subcommand.CACHE, {"list"})
        mock_exec.assert_not_called()

    def test_noop_as_root(self) -> None:
        """Root already has the privileges."""
        with (
            patch("aurctl.core.privilege.is_root", return_value=True),
            patch("aurctl.core.privilege.os.execvp") as mock_exec,
        ):
            reexec_elevated(Subcommand.CACHE, {"clean"})
        mock_exec.assert_not_called()

    def test_reexecutes_under_sudo(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """The command line is re-run through the tool with the user's directories pinned."""
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
        monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
        monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        with (
            patch("aurctl.core.privilege.is_root", return_value=False),
            patch("aurctl.core.privilege.command_exists", return_value=True),
            patch("aurctl.core.privilege.sys.argv", ["aurctl", "cache", "clean", "2"]),
            patch("aurctl.core.privilege.os.execvp") as mock_exec,
        ):
            reexec_elevated(Subcommand.CACHE, {"clean"})

        tool, argv = mock_exec.call_args[0]
        assert tool == "sudo"
        assert argv[0] == "sudo"
        assert argv[2:] == [
            "-m",
            "aurctl",
            "--config-home",
            str(tmp_path / "config"),
            "--state-home",
            str(tmp_path / "state"),
            "--cache-home",
            str(tmp_path / "home" / ".cache"),
            "cache",
            "clean",
            "2",
        ]

    def test_exec_failure_is_privilege_error(self) -> None:
        """OSError from exec is reported as a privilege error."""
        with (
            patch("aurctl.core.privilege.is_root", return_value=False),
            patch("aurctl.core.privilege.command_exists", return_value=True),
            patch("aurctl.core.privilege.os.execvp", side_effect=OSError("denied")),
            pytest.raises(PrivilegeDeniedError, match="denied"),
        ):
            reexec_elevated(Subcommand.ORPHANS, {"adopt"})
