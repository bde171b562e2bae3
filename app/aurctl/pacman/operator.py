"""pacman transactions.

All mutations of the package database go through this module. Each
command is classified with ``needs_sudo`` and elevated by the Elevator
only when required. Transactions are serialized by a process-wide lock
since pacman holds an exclusive database lock of its own.
"""

import logging
import threading
from collections.abc import Sequence
from pathlib import Path

from aurctl.core.errors import SubprocessError
from aurctl.core.privilege import Elevator, Subcommand
from aurctl.models.action import Action, ActionResult, ActionType
from aurctl.utils.shell import CommandResult, command_exists, run_command

logger = logging.getLogger(__name__)

DATABASE_LOCK = threading.Lock()


class PacmanOperator:
    """Executes package transactions with pacman.

    Attributes:
        dry_run: If True, transactions are only printed (``--print``)
            and database edits are skipped.

    Example:
        >>> operator = PacmanOperator(Elevator(), dry_run=True)
        >>> operator.install_files([Path("foo-1.0-1-x86_64.pkg.tar.zst")], explicit=True)
    """

    def __init__(self, elevator: Elevator, dry_run: bool = False) -> None:
        self._elevator = elevator
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        """Check if operator is in dry-run mode."""
        return self._dry_run

    def is_available(self) -> bool:
        """Check if pacman is available."""
        return command_exists("pacman")

    def install_files(self, paths: Sequence[Path], explicit: bool) -> CommandResult:
        """Install built or cached package files (``pacman -U``).

        Args:
            paths: Package files.
            explicit: Mark as explicitly installed, else as dependencies.

        Raises:
            SubprocessError: If the transaction fails.
            PrivilegeDeniedError: If elevation is unavailable.
        """
        reason = "asexplicit" if explicit else "asdeps"
        return self._transaction(
            Subcommand.UPGRADE,
            ["-U", f"--{reason}", *(str(p) for p in paths)],
            [reason],
        )

    def sync_install(self, names: Sequence[str], explicit: bool = False) -> CommandResult:
        """Install packages from the sync databases, skipping up-to-date ones.

        Raises:
            SubprocessError: If the transaction fails.
            PrivilegeDeniedError: If elevation is unavailable.
        """
        reason = "asexplicit" if explicit else "asdeps"
        return self._transaction(
            Subcommand.SYNC,
            ["-S", "--needed", f"--{reason}", *names],
            [reason],
        )

    def download(self, names: Sequence[str]) -> CommandResult:
        """Download packages into the cache without installing (``-Sw``).

        Raises:
            SubprocessError: If the download fails.
            PrivilegeDeniedError: If elevation is unavailable.
        """
        return self._transaction(Subcommand.SYNC, ["-Sw", *names], [])

    def remove(self, names: Sequence[str]) -> CommandResult:
        """Remove exactly the named packages (``-R``).

        Raises:
            SubprocessError: If the transaction fails.
            PrivilegeDeniedError: If elevation is unavailable.
        """
        return self._transaction(Subcommand.REMOVE, ["-R", *names], [])

    def mark_explicit(self, names: Sequence[str]) -> CommandResult:
        """Mark installed packages as explicitly installed.

        Raises:
            SubprocessError: If pacman fails.
            PrivilegeDeniedError: If elevation is unavailable.
        """
        return self._edit_database(names, "asexplicit")

    def mark_dependency(self, names: Sequence[str]) -> CommandResult:
        """Mark installed packages as installed as dependencies.

        Raises:
            SubprocessError: If pacman fails.
            PrivilegeDeniedError: If elevation is unavailable.
        """
        return self._edit_database(names, "asdeps")

    def execute(self, actions: list[Action]) -> list[ActionResult]:
        """Execute planned actions, batched by type.

        Failures are reported per action rather than raised, so a failed
        batch does not hide the outcome of the others.

        Args:
            actions: Actions to execute.

        Returns:
            ActionResult for each action.

        Raises:
            RuntimeError: If pacman is not available.
        """
        if not self.is_available():
            msg = "pacman is not available on this system"
            raise RuntimeError(msg)

        batches: dict[ActionType, list[Action]] = {}
        for action in actions:
            batches.setdefault(action.action_type, []).append(action)

        results: list[ActionResult] = []
        # Removals first so reinstalls cannot conflict with leftovers
        for action_type in (
            ActionType.REMOVE,
            ActionType.INSTALL,
            ActionType.REINSTALL,
            ActionType.ADOPT,
        ):
            batch = batches.get(action_type, [])
            if batch:
                results.extend(self._run_batch(action_type, batch))
        return results

    def _run_batch(self, action_type: ActionType, batch: list[Action]) -> list[ActionResult]:
        names = [a.package for a in batch]
        logger.info(
            "Executing %s for packages: %s (dry_run=%s)",
            action_type.value,
            ", ".join(names),
            self.dry_run,
        )
        try:
            if action_type == ActionType.REMOVE:
                self.remove(names)
            elif action_type == ActionType.INSTALL:
                self.sync_install(names, explicit=True)
            elif action_type == ActionType.REINSTALL:
                self.install_files([a.path for a in batch if a.path is not None], explicit=True)
            else:
                self.mark_explicit(names)
        except SubprocessError as e:
            error = e.output.strip() or str(e)
            return [ActionResult(action=a, success=False, error=error) for a in batch]

        message = "Dry-run completed" if self.dry_run else "Operation completed"
        return [ActionResult(action=a, success=True, message=message) for a in batch]

    def _edit_database(self, names: Sequence[str], reason: str) -> CommandResult:
        if self.dry_run:
            logger.info("Dry run: would mark %s --%s", ", ".join(names), reason)
            return CommandResult(stdout="", stderr="", returncode=0)
        return self._transaction(Subcommand.DATABASE, ["-D", f"--{reason}", *names], [reason])

    def _transaction(
        self,
        subcommand: Subcommand,
        args: list[str],
        flags: list[str],
    ) -> CommandResult:
        if self.dry_run and subcommand != Subcommand.DATABASE:
            # Install reasons are meaningless for --print
            args = [*(a for a in args if a not in ("--asdeps", "--asexplicit")), "--print"]
            flags = ["print"]
        else:
            args = [*args, "--noconfirm"]

        command = self._elevator.wrap(["pacman", *args], subcommand, flags)
        logger.debug("Running %s", " ".join(command))

        with DATABASE_LOCK:
            result = run_command(command, timeout=None)

        if not result.success:
            raise SubprocessError(command, result.returncode, result.output)
        return result
