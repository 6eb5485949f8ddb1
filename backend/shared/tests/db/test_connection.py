"""Tests for Database connection, pragmas and schema."""

from __future__ import annotations

import os
import sqlite3
from typing import TYPE_CHECKING

import pytest

from shared.db.connection import Database

if TYPE_CHECKING:
    from pathlib import Path


class TestConnect:
    def test_creates_schema_and_connects(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()

        tables = db.connection.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name",
        ).fetchall()
        table_names = [t[0] for t in tables]
        assert {"users", "plays", "rolling_stats", "ledger_entries"} <= set(table_names)
        db.close()

    def test_applies_pragmas(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db", busy_timeout_ms=1234)
        db.connect()
        conn = db.connection

        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        assert conn.execute("PRAGMA busy_timeout").fetchone()[0] == 1234
        assert conn.isolation_level is None
        db.close()

    def test_reconnect_keeps_data(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()
        db.connection.execute(
            "INSERT INTO users (id, username, created_at) VALUES ('u1', 'alice', '2026-01-01T00:00:00+00:00')",
        )
        db.close()
        db.connect()

        assert db.connection.execute("SELECT username FROM users").fetchone()[0] == "alice"
        db.close()

    def test_usernames_unique_ignoring_case(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()
        insert = "INSERT INTO users (id, username, created_at) VALUES (?, ?, '2026-01-01')"
        db.connection.execute(insert, ("u1", "alice"))

        with pytest.raises(sqlite3.IntegrityError):
            db.connection.execute(insert, ("u2", "Alice"))
        db.close()

    def test_connection_raises_when_disconnected(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        with pytest.raises(RuntimeError, match="not connected"):
            _ = db.connection

    def test_connection_raises_after_close(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()
        db.close()
        with pytest.raises(RuntimeError, match="not connected"):
            _ = db.connection

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "dir" / "stats.db"
        db = Database(path)
        db.connect()

        assert path.exists()
        assert db.path == str(path)
        db.close()

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_hardens_file_permissions(self, tmp_path: Path) -> None:
        path = tmp_path / "stats.db"
        db = Database(path)
        db.connect()

        assert path.stat().st_mode & 0o777 == 0o600
        db.close()
