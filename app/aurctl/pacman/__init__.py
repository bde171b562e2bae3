"""pacman subprocess interface: read-only queries and transactions."""

from aurctl.pacman.database import PacmanDatabase, parse_query_info
from aurctl.pacman.operator import DATABASE_LOCK, PacmanOperator

__all__ = ["DATABASE_LOCK", "PacmanDatabase", "PacmanOperator", "parse_query_info"]
