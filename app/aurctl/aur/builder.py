"""makepkg wrapper.

Builds always run unprivileged. Running builds are tracked so that an
interrupt can terminate them.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path

from aurctl.core.errors import SubprocessError
from aurctl.core.privilege import Elevator
from aurctl.models.build import FailureReason
from aurctl.utils.shell import run_command, start_process

logger = logging.getLogger(__name__)

# makepkg exit codes for unsatisfied dependencies
E_INSTALL_DEPS_FAILED = 8
E_MISSING_MAKEPKG_DEPS = 15
MISSING_DEPENDENCY_CODES = frozenset({E_INSTALL_DEPS_FAILED, E_MISSING_MAKEPKG_DEPS})


@dataclass(frozen=True, slots=True)
class BuildOutput:
    """Exit status and combined output of one makepkg run."""

    returncode: int
    output: str

    @property
    def success(self) -> bool:
        """Check if makepkg succeeded."""
        return self.returncode == 0

    @property
    def failure_reason(self) -> FailureReason | None:
        """Map the exit status to a failure reason (None on success)."""
        if self.success:
            return None
        if self.returncode in MISSING_DEPENDENCY_CODES:
            return FailureReason.MISSING_DEPENDENCY
        return FailureReason.BUILD_FAILED


class Makepkg:
    """Runs makepkg in build-script clones."""

    # Dependencies are installed by aurctl before the build, so no --syncdeps
    BUILD_ARGS: tuple[str, ...] = ("makepkg", "--force", "--noconfirm")

    def __init__(self, elevator: Elevator) -> None:
        self._elevator = elevator
        self._lock = threading.Lock()
        self._running: dict[Path, subprocess.Popen[str]] = {}
        self._cancelled = False

    def packagelist(self, path: Path) -> list[Path]:
        """Paths of the package files a build of ``path`` produces.

        Raises:
            SubprocessError: If makepkg cannot evaluate the PKGBUILD.
        """
        command = self._elevator.deescalate(["makepkg", "--packagelist"])
        try:
            result = run_command(command, cwd=str(path))
        except FileNotFoundError as e:
            raise SubprocessError(command, 127, "makepkg is not installed") from e
        if not result.success:
            raise SubprocessError(command, result.returncode, result.output)
        return [Path(line.strip()) for line in result.stdout.splitlines() if line.strip()]

    def build(self, path: Path) -> BuildOutput:
        """Run makepkg in ``path`` and wait for it.

        Blocks without a timeout; ``terminate_all`` stops it.

        Raises:
            PrivilegeDeniedError: If the build would have to run as root.
        """
        command = self._elevator.deescalate(list(self.BUILD_ARGS))
        logger.info("Building %s", path.name)
        with self._lock:
            # Nothing may start once terminate_all has run
            if self._cancelled:
                return BuildOutput(returncode=130, output="Build cancelled")
            try:
                process = start_process(command, cwd=str(path))
            except FileNotFoundError:
                return BuildOutput(returncode=127, output="makepkg is not installed")
            self._running[path] = process
        try:
            output, _ = process.communicate()
        finally:
            with self._lock:
                self._running.pop(path, None)

        logger.debug("makepkg in %s exited with %d", path.name, process.returncode)
        return BuildOutput(returncode=process.returncode, output=output or "")

    def terminate_all(self) -> list[Path]:
        """Terminate every running build and refuse to start new ones.

        Returns:
            Clone directories whose builds were terminated.
        """
        with self._lock:
            self._cancelled = True
            running = dict(self._running)
        for path, process in running.items():
            logger.warning("Terminating build in %s", path.name)
            process.terminate()
        return list(running)
