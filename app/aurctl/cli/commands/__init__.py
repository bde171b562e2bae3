"""CLI commands for aurctl.

This package contains all subcommand implementations.
"""

from aurctl.cli.commands import aur, backup, cache, config, deps, orphans, pacman

__all__ = ["aur", "backup", "cache", "config", "deps", "orphans", "pacman"]
