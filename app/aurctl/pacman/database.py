"""Read-only queries against the local and sync pacman databases.

Nothing here needs root. Output is parsed with the C locale so field
names are stable.
"""

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from aurctl.core.errors import SubprocessError
from aurctl.models.package import InstalledPackage
from aurctl.utils.shell import CommandResult, command_exists, run_command

logger = logging.getLogger(__name__)

_PACMAN_ENV = {"LC_ALL": "C"}

# pacman -T exits with 127 when at least one dependency is unsatisfied
_DEPTEST_UNSATISFIED = 127

_NONE_VALUE = "None"


class PacmanDatabase:
    """Query interface over ``pacman -Q``, ``-T``, ``-S --print``."""

    _QUERY_TIMEOUT: float = 60.0

    def is_available(self) -> bool:
        """Check if pacman is available."""
        return command_exists("pacman")

    def deptest(self, dependencies: Iterable[str]) -> set[str]:
        """Find the dependencies the installed system does not satisfy.

        Args:
            dependencies: Dependency strings, optionally with constraints.

        Returns:
            The subset of dependency strings that are unsatisfied.

        Raises:
            SubprocessError: If pacman fails for another reason.
        """
        deps = list(dict.fromkeys(dependencies))
        if not deps:
            return set()

        result = self._pacman(["-T", *deps], check=False)
        if result.success:
            return set()
        if result.returncode != _DEPTEST_UNSATISFIED:
            raise SubprocessError(["pacman", "-T", *deps], result.returncode, result.output)
        return {line.strip() for line in result.stdout.splitlines() if line.strip()}

    def repo_provider(self, dependency: str) -> str | None:
        """Name of the sync-database package that would satisfy a dependency.

        Args:
            dependency: Package or virtual name.

        Returns:
            The providing package name, or None if no repository has it.
        """
        result = self._pacman(["-Sp", "--print-format", "%n", dependency], check=False)
        if not result.success:
            return None
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if dependency in lines:
            return dependency
        # A group expands to several packages and is not a dependency
        if len(lines) != 1:
            return None
        return lines[0]

    def installed(self) -> list[InstalledPackage]:
        """All installed packages with dependency information.

        Raises:
            SubprocessError: If ``pacman -Qi`` fails.
        """
        result = self._pacman(["-Qi"])
        return list(parse_query_info(result.stdout))

    def versions(self) -> dict[str, str]:
        """Installed package name to version."""
        return self._name_version(["-Q"])

    def explicit(self) -> dict[str, str]:
        """Explicitly installed package name to version."""
        return self._name_version(["-Qe"])

    def foreign(self) -> dict[str, str]:
        """Installed packages not found in any sync database (AUR or local builds)."""
        return self._name_version(["-Qm"])

    def package_file_info(self, path: Path) -> tuple[str, str] | None:
        """Name and version stored inside a package file.

        Returns:
            (name, version), or None if the file is not a readable package.
        """
        result = self._pacman(["-Qp", str(path)], check=False)
        if not result.success:
            logger.debug("pacman -Qp %s failed: %s", path, result.output)
            return None
        parts = result.stdout.split()
        if len(parts) != 2:
            return None
        return parts[0], parts[1]

    def _name_version(self, args: list[str]) -> dict[str, str]:
        # -Qe/-Qm exit 1 when nothing matches
        result = self._pacman(args, check=False)
        if not result.success and result.stdout.strip():
            raise SubprocessError(["pacman", *args], result.returncode, result.output)

        packages: dict[str, str] = {}
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) != 2:
                logger.debug("Skipping malformed pacman line: %r", line[:100])
                continue
            packages[parts[0]] = parts[1]
        return packages

    def _pacman(self, args: list[str], *, check: bool = True) -> CommandResult:
        command = ["pacman", *args]
        try:
            result = run_command(command, timeout=self._QUERY_TIMEOUT, env=_PACMAN_ENV)
        except FileNotFoundError as e:
            raise SubprocessError(command, 127, "pacman is not installed") from e
        if check and not result.success:
            raise SubprocessError(command, result.returncode, result.output)
        return result


def _split_list(value: str) -> tuple[str, ...]:
    if not value or value == _NONE_VALUE:
        return ()
    return tuple(value.split())


def _parse_optdepends(lines: list[str]) -> tuple[str, ...]:
    names: list[str] = []
    for line in lines:
        if not line or line == _NONE_VALUE:
            continue
        # "python-foo: description [installed]"
        names.append(line.split(":", 1)[0].strip())
    return tuple(names)


def _parse_block(fields: dict[str, list[str]]) -> InstalledPackage | None:
    name = " ".join(fields.get("Name", [])).strip()
    version = " ".join(fields.get("Version", [])).strip()
    if not name or not version:
        logger.debug("Skipping pacman -Qi entry without name/version")
        return None

    reason = " ".join(fields.get("Install Reason", [])).strip()
    return InstalledPackage(
        name=name,
        version=version,
        explicit=reason.startswith("Explicitly"),
        depends=_split_list(" ".join(fields.get("Depends On", []))),
        provides=_split_list(" ".join(fields.get("Provides", []))),
        optdepends=_parse_optdepends(fields.get("Optional Deps", [])),
    )


def parse_query_info(output: str) -> Iterator[InstalledPackage]:
    """Parse ``pacman -Qi`` output into installed packages.

    Entries are separated by blank lines; a field is ``Key : value`` and
    continuation lines are indented.
    """
    fields: dict[str, list[str]] = {}
    key: str | None = None

    for line in [*output.splitlines(), ""]:
        if not line.strip():
            if fields:
                package = _parse_block(fields)
                if package is not None:
                    yield package
            fields = {}
            key = None
            continue

        if line[0].isspace():
            if key is not None:
                fields[key].append(line.strip())
            continue

        name, sep, value = line.partition(":")
        if not sep:
            continue
        key = name.strip()
        fields[key] = [value.strip()]
