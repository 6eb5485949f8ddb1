"""SQLite database connection and schema management."""

import os
import sqlite3
from pathlib import Path

import structlog

logger = structlog.get_logger()

_DB_FILE_PERMISSIONS = 0o600

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    username TEXT NOT NULL,
    total_plays INTEGER NOT NULL DEFAULT 0,
    total_words_found INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_users_username
    ON users (username COLLATE NOCASE);

CREATE TABLE IF NOT EXISTS plays (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    mode TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    started_at TEXT NOT NULL,
    completed_at TEXT,
    score INTEGER,
    word_count INTEGER,
    avg_word_score REAL,
    best_word TEXT,
    best_word_score INTEGER,
    best_word_board TEXT
);

CREATE INDEX IF NOT EXISTS idx_plays_user_mode
    ON plays (user_id, mode, status, id DESC);

CREATE TABLE IF NOT EXISTS rolling_stats (
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    mode TEXT NOT NULL,
    play_count INTEGER NOT NULL DEFAULT 0,
    last_play_date TEXT,
    current_short_wma REAL,
    peak_short_wma REAL,
    peak_short_wma_date TEXT,
    current_long_wma REAL,
    peak_long_wma REAL,
    peak_long_wma_date TEXT,
    PRIMARY KEY (user_id, mode)
);

CREATE TABLE IF NOT EXISTS ledger_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    mode TEXT NOT NULL,
    metric TEXT NOT NULL,
    value REAL NOT NULL,
    word TEXT,
    board TEXT,
    play_id INTEGER,
    achieved_on TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_ledger_partition
    ON ledger_entries (user_id, mode, metric, value DESC, id);

CREATE INDEX IF NOT EXISTS idx_ledger_global
    ON ledger_entries (mode, metric, value DESC, id);
"""


class Database:
    """SQLite database wrapper with schema management."""

    def __init__(self, path: str | Path, *, busy_timeout_ms: int = 5000) -> None:
        self._path = str(path)
        self._busy_timeout_ms = busy_timeout_ms
        self._conn: sqlite3.Connection | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def connection(self) -> sqlite3.Connection:
        """Return the active connection or raise if disconnected."""
        if self._conn is None:
            raise RuntimeError("Database is not connected")
        return self._conn

    def connect(self) -> None:
        """Open the database, apply pragmas, create schema, and harden file permissions.

        The connection runs in autocommit mode (isolation_level=None); the
        stats store issues explicit BEGIN/COMMIT/ROLLBACK around each unit
        of work.
        """
        Path(self._path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self._path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.execute(f"PRAGMA busy_timeout={int(self._busy_timeout_ms)}")
        self._conn.executescript(_SCHEMA_SQL)

        self._harden_permissions()
        logger.info("database connected", path=self._path)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _harden_permissions(self) -> None:
        """Set owner-only permissions on the DB file and its WAL/SHM siblings (POSIX, best effort)."""
        if os.name != "posix":  # pragma: no cover
            return
        for suffix in ("", "-wal", "-shm"):
            p = Path(self._path + suffix)
            if p.exists():
                try:
                    p.chmod(_DB_FILE_PERMISSIONS)
                except OSError:
                    logger.warning("could not set file permissions", permissions=oct(_DB_FILE_PERMISSIONS), path=str(p))
