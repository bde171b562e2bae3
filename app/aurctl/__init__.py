"""aurctl - AUR synchronization and package management for Arch Linux.

Builds AUR packages in dependency order on top of pacman and manages
the package cache, package snapshots and orphaned dependencies.
"""

__version__ = "0.4.0"
