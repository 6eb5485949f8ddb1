"""SQLite database layer: connection management and the stats store implementation."""

from shared.db.connection import Database
from shared.db.stats_store import SqliteStatsStore, SqliteStatsTransaction

__all__ = [
    "Database",
    "SqliteStatsStore",
    "SqliteStatsTransaction",
]
