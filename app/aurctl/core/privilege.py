"""Privilege classification and the elevation boundary.

``needs_sudo`` is the single authority on whether an operation must run
as root. It is a pure function of the subcommand and its flags, so it can
be tested without executing anything.

Every elevated subprocess goes through ``Elevator.wrap``; every build
goes through ``Elevator.deescalate``. Builds never run as root.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Collection, Sequence
from dataclasses import dataclass
from enum import Enum

from aurctl.core.errors import PrivilegeDeniedError
from aurctl.core.paths import get_cache_dir, get_config_dir, get_state_dir
from aurctl.utils.shell import command_exists, is_root

logger = logging.getLogger(__name__)


class Subcommand(str, Enum):
    """Command families known to the classifier."""

    SYNC = "sync"
    UPGRADE = "upgrade"
    REMOVE = "remove"
    DATABASE = "database"
    FILES = "files"
    QUERY = "query"
    DEPTEST = "deptest"
    AUR = "aur"
    BACKUP = "backup"
    CACHE = "cache"
    ORPHANS = "orphans"
    DEPS = "deps"


@dataclass(frozen=True, slots=True)
class PrivilegePolicy:
    """Elevation rule for one subcommand.

    Attributes:
        base: Whether the bare subcommand modifies the system.
        read_only: Flags that turn a modifying base into a query.
        mutating: Flags that always require elevation.
    """

    base: bool
    read_only: frozenset[str] = frozenset()
    mutating: frozenset[str] = frozenset()


POLICIES: dict[Subcommand, PrivilegePolicy] = {
    Subcommand.SYNC: PrivilegePolicy(
        base=True,
        read_only=frozenset({"info", "search", "list", "print", "groups"}),
        mutating=frozenset({"asdeps", "asexplicit", "refresh", "sysupgrade", "clean"}),
    ),
    Subcommand.UPGRADE: PrivilegePolicy(
        base=True,
        read_only=frozenset({"print"}),
        mutating=frozenset({"asdeps", "asexplicit"}),
    ),
    Subcommand.REMOVE: PrivilegePolicy(base=True, read_only=frozenset({"print"})),
    Subcommand.DATABASE: PrivilegePolicy(
        base=False,
        mutating=frozenset({"asdeps", "asexplicit"}),
    ),
    Subcommand.FILES: PrivilegePolicy(base=False, mutating=frozenset({"refresh"})),
    Subcommand.QUERY: PrivilegePolicy(base=False),
    Subcommand.DEPTEST: PrivilegePolicy(base=False),
    # Installs of built packages are classified as UPGRADE
    Subcommand.AUR: PrivilegePolicy(base=False),
    # Restores drive pacman, which is classified per call
    Subcommand.BACKUP: PrivilegePolicy(base=False),
    Subcommand.CACHE: PrivilegePolicy(
        base=False,
        read_only=frozenset({"list", "search", "info", "missing"}),
        mutating=frozenset({"clean", "notsaved", "invalid", "refresh", "downgrade"}),
    ),
    Subcommand.ORPHANS: PrivilegePolicy(
        base=False,
        mutating=frozenset({"adopt", "abandon"}),
    ),
    Subcommand.DEPS: PrivilegePolicy(base=False),
}


def normalize_flag(flag: str) -> str:
    """Turn ``--as-deps``/``--asdeps``/``asdeps`` into ``asdeps``."""
    return flag.lstrip("-").replace("-", "").replace("_", "").lower()


def needs_sudo(subcommand: Subcommand, flags: Collection[str] = ()) -> bool:
    """Decide whether an operation requires elevated execution.

    Any mutating flag requires elevation regardless of other flags.
    Otherwise the subcommand's base decision applies, unless a read-only
    flag turns it into a query.

    Args:
        subcommand: The command family.
        flags: Names of the flags that are set.

    Returns:
        True if the operation must run as root.
    """
    policy = POLICIES[subcommand]
    present = {normalize_flag(f) for f in flags}

    if present & policy.mutating:
        return True
    if policy.base:
        return not (present & policy.read_only)
    return False


# Global options that must never reach pacman
AURCTL_GLOBALS: frozenset[str] = frozenset({"--english", "--japanese", "--german"})
AURCTL_VALUED_GLOBALS: frozenset[str] = frozenset({"--log-level"})


def translate_flags(args: Sequence[str]) -> list[str]:
    """Strip aurctl-only global flags before forwarding to pacman.

    Args:
        args: Raw command-line arguments.

    Returns:
        Arguments safe to pass to pacman.
    """
    forwarded: list[str] = []
    skip_next = False
    for arg in args:
        if skip_next:
            skip_next = False
            continue
        if arg in AURCTL_GLOBALS:
            continue
        if arg in AURCTL_VALUED_GLOBALS:
            skip_next = True
            continue
        if any(arg.startswith(f"{flag}=") for flag in AURCTL_VALUED_GLOBALS):
            continue
        forwarded.append(arg)
    return forwarded


_OPERATIONS: dict[str, Subcommand] = {
    "S": Subcommand.SYNC,
    "U": Subcommand.UPGRADE,
    "R": Subcommand.REMOVE,
    "D": Subcommand.DATABASE,
    "F": Subcommand.FILES,
    "Q": Subcommand.QUERY,
    "T": Subcommand.DEPTEST,
}

_LONG_OPERATIONS: dict[str, Subcommand] = {
    "--sync": Subcommand.SYNC,
    "--upgrade": Subcommand.UPGRADE,
    "--remove": Subcommand.REMOVE,
    "--database": Subcommand.DATABASE,
    "--files": Subcommand.FILES,
    "--query": Subcommand.QUERY,
    "--deptest": Subcommand.DEPTEST,
}

# Short options whose long names matter for classification, per operation
_SHORT_FLAGS: dict[Subcommand, dict[str, str]] = {
    Subcommand.SYNC: {
        "y": "refresh",
        "u": "sysupgrade",
        "i": "info",
        "s": "search",
        "l": "list",
        "p": "print",
        "g": "groups",
        "c": "clean",
    },
    Subcommand.UPGRADE: {"p": "print"},
    Subcommand.REMOVE: {"p": "print"},
    Subcommand.FILES: {"y": "refresh"},
}


def classify_pacman_args(args: Sequence[str]) -> tuple[Subcommand, frozenset[str]]:
    """Find the pacman operation and the long names of the flags set.

    Args:
        args: pacman arguments, e.g. ``["-Syu", "--needed", "foo"]``.

    Returns:
        The operation and normalized flag names.

    Raises:
        ValueError: If no operation (or more than one) is given.
    """
    operations: set[Subcommand] = set()
    shorts: list[str] = []
    flags: set[str] = set()

    for arg in args:
        if arg == "--":
            break
        if arg.startswith("--"):
            if arg in _LONG_OPERATIONS:
                operations.add(_LONG_OPERATIONS[arg])
            else:
                flags.add(normalize_flag(arg.split("=", 1)[0]))
        elif arg.startswith("-") and len(arg) > 1:
            for letter in arg[1:]:
                if letter in _OPERATIONS:
                    operations.add(_OPERATIONS[letter])
                else:
                    shorts.append(letter)

    if len(operations) != 1:
        msg = "Exactly one pacman operation (-S, -U, -R, -D, -F, -Q, -T) is required"
        raise ValueError(msg)

    operation = operations.pop()
    mapping = _SHORT_FLAGS.get(operation, {})
    flags.update(mapping[letter] for letter in shorts if letter in mapping)
    return operation, frozenset(flags)


class Elevator:
    """The one place where commands gain or drop privileges.

    Attributes:
        tool: Elevation program (sudo).
        build_user: Unprivileged user for builds when running as root.
    """

    def __init__(self, tool: str = "sudo", build_user: str | None = None) -> None:
        self._tool = tool
        self._build_user = build_user

    @property
    def tool(self) -> str:
        """Elevation program."""
        return self._tool

    def wrap(
        self,
        args: list[str],
        subcommand: Subcommand,
        flags: Collection[str] = (),
    ) -> list[str]:
        """Prefix a command with the elevation tool if it needs root.

        Args:
            args: Command to run.
            subcommand: Classification of the command.
            flags: Flags set on the command.

        Returns:
            The command, elevated when required.

        Raises:
            PrivilegeDeniedError: If elevation is required but unavailable.
        """
        if not needs_sudo(subcommand, flags) or is_root():
            return list(args)

        if not command_exists(self._tool):
            msg = f"{subcommand.value} requires root, but '{self._tool}' is not available"
            raise PrivilegeDeniedError(msg)

        logger.debug("Elevating %s via %s", subcommand.value, self._tool)
        return [self._tool, *args]

    def resolve_build_user(self) -> str | None:
        """Name the user builds must run as, or None to run as ourselves."""
        if not is_root():
            return None
        user = self._build_user or os.environ.get("SUDO_USER")
        if not user or user == "root":
            return None
        return user

    def deescalate(self, args: list[str]) -> list[str]:
        """Make sure a build command never runs as root.

        Args:
            args: Build command.

        Returns:
            The command, wrapped to run as the build user when we are root.

        Raises:
            PrivilegeDeniedError: If running as root without a build user.
        """
        if not is_root():
            return list(args)

        user = self.resolve_build_user()
        if user is None:
            msg = (
                "Refusing to build as root. Run aurctl as a normal user, "
                "or set [build] user in the settings file."
            )
            raise PrivilegeDeniedError(msg)

        if not command_exists(self._tool):
            msg = f"Cannot drop privileges to '{user}': '{self._tool}' is not available"
            raise PrivilegeDeniedError(msg)

        return [self._tool, "-u", user, "--", *args]


def _home_options() -> list[str]:
    """Global options pinning the invoking user's XDG base directories.

    sudo resets HOME and drops XDG_*, so without them the elevated run
    would read root's settings and snapshots.
    """
    return [
        "--config-home",
        str(get_config_dir().parent),
        "--state-home",
        str(get_state_dir().parent),
        "--cache-home",
        str(get_cache_dir().parent),
    ]


def reexec_elevated(subcommand: Subcommand, flags: Collection[str], tool: str = "sudo") -> None:
    """Re-execute the whole CLI under the elevation tool when required.

    Does nothing when no elevation is needed or when already root.
    Otherwise replaces the current process.

    Raises:
        PrivilegeDeniedError: If elevation is required but unavailable.
    """
    if not needs_sudo(subcommand, flags) or is_root():
        return

    if not command_exists(tool):
        msg = f"{subcommand.value} requires root, but '{tool}' is not available"
        raise PrivilegeDeniedError(msg)

    argv = [tool, sys.executable, "-m", "aurctl", *_home_options(), *sys.argv[1:]]
    logger.info("Re-executing with elevated privileges: %s", " ".join(argv))
    try:
        os.execvp(tool, argv)
    except OSError as e:
        raise PrivilegeDeniedError(f"Elevation via {tool} failed: {e}") from e
