"""Git operations on AUR build-script clones.

Every package base is kept as one clone under the build directory.
Clones are never force-updated: a dirty work tree or a history that
cannot be fast-forwarded is reported instead of being overwritten.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from aurctl.core.errors import LocalChangesError, SubprocessError
from aurctl.core.privilege import Elevator
from aurctl.utils.shell import CommandResult, run_command

logger = logging.getLogger(__name__)

# Never wait for credentials on a terminal
_GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}

# Last revision the user approved in a review
REVIEWED_REF = "refs/aurctl/reviewed"


@dataclass(frozen=True, slots=True)
class FetchResult:
    """State of a clone after fetching.

    Attributes:
        path: Clone directory.
        previous: HEAD before the fetch (None for a fresh clone).
        current: HEAD after the fetch.
    """

    path: Path
    previous: str | None
    current: str

    @property
    def cloned(self) -> bool:
        """Check if the clone was created by this fetch."""
        return self.previous is None

    @property
    def changed(self) -> bool:
        """Check if the fetch moved HEAD."""
        return self.previous != self.current


class GitClient:
    """Clone and update build-script repositories.

    Commands run de-escalated, so clones are owned by the build user.
    """

    def __init__(self, elevator: Elevator, timeout: float = 120.0) -> None:
        self._elevator = elevator
        self._timeout = timeout

    def fetch(self, url: str, path: Path, refresh: bool = False) -> FetchResult:
        """Make sure a clone of ``url`` exists at ``path``.

        Args:
            url: Remote to clone from.
            path: Clone directory.
            refresh: Pull new commits if the clone already exists.

        Returns:
            FetchResult describing HEAD before and after.

        Raises:
            LocalChangesError: If the clone is dirty or has diverged.
            SubprocessError: If git fails or times out.
        """
        if not (path / ".git").is_dir():
            path.parent.mkdir(parents=True, exist_ok=True)
            logger.info("Cloning %s", url)
            self._git(["clone", url, str(path)])
            return FetchResult(path=path, previous=None, current=self.head(path))

        if self.is_dirty(path):
            raise LocalChangesError(str(path), "uncommitted changes in the work tree")

        previous = self.head(path)
        if refresh:
            logger.info("Pulling %s", path.name)
            result = self._git(["pull", "--ff-only", "--quiet"], cwd=path, check=False)
            if not result.success:
                if self._diverged(path):
                    raise LocalChangesError(str(path), "local history diverged from the AUR")
                command = ["git", "pull", "--ff-only"]
                raise SubprocessError(command, result.returncode, result.output)

        return FetchResult(path=path, previous=previous, current=self.head(path))

    def head(self, path: Path) -> str:
        """Commit hash of HEAD."""
        return self._git(["rev-parse", "HEAD"], cwd=path).stdout.strip()

    def is_dirty(self, path: Path) -> bool:
        """Check for uncommitted or untracked changes, ignoring build output."""
        result = self._git(["status", "--porcelain", "--untracked-files=no"], cwd=path)
        return bool(result.stdout.strip())

    def diff(self, path: Path, old: str, new: str) -> str:
        """Textual diff between two revisions."""
        return self._git(["diff", "--stat", "--patch", old, new], cwd=path).stdout

    def reviewed(self, path: Path) -> str | None:
        """Revision last approved in a review, or None if there is none."""
        args = ["rev-parse", "--verify", "--quiet", f"{REVIEWED_REF}^{{commit}}"]
        result = self._git(args, cwd=path, check=False)
        if not result.success:
            return None
        return result.stdout.strip() or None

    def mark_reviewed(self, path: Path, revision: str) -> None:
        """Record ``revision`` as approved."""
        self._git(["update-ref", REVIEWED_REF, revision], cwd=path)

    def _diverged(self, path: Path) -> bool:
        # Exit 1 means HEAD is not an ancestor of the upstream branch
        result = self._git(
            ["merge-base", "--is-ancestor", "HEAD", "@{upstream}"], cwd=path, check=False
        )
        return result.returncode == 1

    def _git(
        self,
        args: list[str],
        *,
        cwd: Path | None = None,
        check: bool = True,
    ) -> CommandResult:
        command = self._elevator.deescalate(["git", *args])
        try:
            result = run_command(
                command,
                timeout=self._timeout,
                cwd=str(cwd) if cwd is not None else None,
                env=_GIT_ENV,
            )
        except subprocess.TimeoutExpired as e:
            msg = f"timed out after {self._timeout:g}s"
            raise SubprocessError(["git", *args], -1, msg) from e
        except FileNotFoundError as e:
            raise SubprocessError(["git", *args], 127, "git is not installed") from e

        if check and not result.success:
            raise SubprocessError(["git", *args], result.returncode, result.output)
        return result
