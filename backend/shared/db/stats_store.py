"""SQLite-backed stats store."""

from __future__ import annotations

import asyncio
import contextlib
import sqlite3
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeVar

import structlog

from shared.dal.errors import ConflictError, StoreFailureError
from shared.dal.models import (
    BestEntry,
    GameMode,
    LeaderboardEntry,
    PlayRecord,
    RollingStat,
    User,
    WindowSlot,
    WindowStat,
    WmaKind,
)
from shared.dal.stats_store import StatsStore, StatsTransaction

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
    from datetime import date

    from shared.dal.models import BestEntryDraft, MetricType, PlayResult
    from shared.db.connection import Database

logger = structlog.get_logger()

T = TypeVar("T")

_BUSY_MARKERS = ("locked", "busy")

# (value column, date column) per global WMA board. Column names never come from callers.
_WMA_COLUMNS: dict[tuple[WindowSlot, WmaKind], tuple[str, str]] = {
    (WindowSlot.SHORT, WmaKind.CURRENT): ("current_short_wma", "last_play_date"),
    (WindowSlot.SHORT, WmaKind.PEAK): ("peak_short_wma", "peak_short_wma_date"),
    (WindowSlot.LONG, WmaKind.CURRENT): ("current_long_wma", "last_play_date"),
    (WindowSlot.LONG, WmaKind.PEAK): ("peak_long_wma", "peak_long_wma_date"),
}


def _is_busy(exc: sqlite3.Error) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and any(m in str(exc).lower() for m in _BUSY_MARKERS)


def _translate_write_error(exc: sqlite3.Error) -> Exception:
    if _is_busy(exc):
        return ConflictError("Store is busy with a concurrent write")
    return StoreFailureError(str(exc))


def _placeholders(count: int) -> str:
    return ", ".join("?" * count)


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _play_from_row(row: sqlite3.Row) -> PlayRecord:
    return PlayRecord(
        play_id=row["id"],
        user_id=row["user_id"],
        mode=row["mode"],
        status=row["status"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        score=row["score"],
        word_count=row["word_count"],
        avg_word_score=row["avg_word_score"],
        best_word=row["best_word"],
        best_word_score=row["best_word_score"],
        best_word_board=row["best_word_board"],
    )


def _rolling_stat_from_row(row: sqlite3.Row) -> RollingStat:
    return RollingStat(
        user_id=row["user_id"],
        mode=row["mode"],
        play_count=row["play_count"],
        last_play_date=row["last_play_date"],
        short=WindowStat(
            current=row["current_short_wma"],
            peak=row["peak_short_wma"],
            peak_date=row["peak_short_wma_date"],
        ),
        long=WindowStat(
            current=row["current_long_wma"],
            peak=row["peak_long_wma"],
            peak_date=row["peak_long_wma_date"],
        ),
    )


def _entry_from_row(row: sqlite3.Row) -> BestEntry:
    return BestEntry(
        entry_id=row["id"],
        user_id=row["user_id"],
        mode=row["mode"],
        metric=row["metric"],
        value=row["value"],
        word=row["word"],
        board=row["board"],
        play_id=row["play_id"],
        achieved_on=row["achieved_on"],
    )


def _user_from_row(row: sqlite3.Row) -> User:
    return User(
        user_id=row["id"],
        username=row["username"],
        total_plays=row["total_plays"],
        total_words_found=row["total_words_found"],
    )


class SqliteStatsTransaction(StatsTransaction):
    """StatsTransaction bound to a connection with an open transaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # -- users --

    async def create_user(self, user: User) -> None:
        """Insert a user. Raises ValueError on duplicate id or username."""
        try:
            self._conn.execute(
                "INSERT INTO users (id, username, total_plays, total_words_found, created_at) VALUES (?, ?, ?, ?, ?)",
                (user.user_id, user.username, user.total_plays, user.total_words_found, _iso(datetime.now(UTC))),
            )
        except sqlite3.IntegrityError as exc:
            error_msg = str(exc).lower()
            if "users.username" in error_msg or "idx_users_username" in error_msg:
                raise ValueError(f"Username '{user.username}' already taken") from exc
            raise ValueError(f"User with id '{user.user_id}' already exists") from exc

    async def get_user(self, user_id: str) -> User | None:
        row = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _user_from_row(row) if row is not None else None

    async def get_users_by_name(self, usernames: Sequence[str]) -> list[User]:
        if not usernames:
            return []
        rows = self._conn.execute(
            f"SELECT * FROM users WHERE username COLLATE NOCASE IN ({_placeholders(len(usernames))})",  # noqa: S608
            tuple(usernames),
        ).fetchall()
        return [_user_from_row(row) for row in rows]

    async def increment_user_plays(self, user_id: str) -> None:
        self._conn.execute("UPDATE users SET total_plays = total_plays + 1 WHERE id = ?", (user_id,))

    async def add_words_found(self, user_id: str, count: int) -> None:
        self._conn.execute(
            "UPDATE users SET total_words_found = total_words_found + ? WHERE id = ?",
            (count, user_id),
        )

    # -- play records --

    async def insert_play_record(self, user_id: str, mode: GameMode, started_at: datetime) -> int:
        cursor = self._conn.execute(
            "INSERT INTO plays (user_id, mode, status, started_at) VALUES (?, ?, 'pending', ?)",
            (user_id, mode.value, _iso(started_at)),
        )
        return cursor.lastrowid

    async def complete_play_record(
        self,
        play_id: int,
        result: PlayResult,
        expected_owner: str,
    ) -> PlayRecord | None:
        # Single conditional UPDATE: ownership and pending state are checked by the
        # same statement that writes, so a second completion always matches zero rows.
        row = self._conn.execute(
            "UPDATE plays SET "
            "status = 'completed', "
            "completed_at = ?, "
            "score = ?, "
            "word_count = ?, "
            "avg_word_score = ?, "
            "best_word = ?, "
            "best_word_score = ?, "
            "best_word_board = ? "
            "WHERE id = ? AND user_id = ? AND status = 'pending' "
            "RETURNING *",
            (
                _iso(result.completed_at),
                result.score,
                result.word_count,
                result.avg_word_score,
                result.best_word,
                result.best_word_score,
                result.best_word_board,
                play_id,
                expected_owner,
            ),
        ).fetchone()
        return _play_from_row(row) if row is not None else None

    async def get_play_record(self, play_id: int) -> PlayRecord | None:
        row = self._conn.execute("SELECT * FROM plays WHERE id = ?", (play_id,)).fetchone()
        return _play_from_row(row) if row is not None else None

    async def list_play_records(
        self,
        user_id: str,
        mode: GameMode | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[PlayRecord]:
        sql = "SELECT * FROM plays WHERE user_id = ?"
        params: list[object] = [user_id]
        if mode is not None:
            sql += " AND mode = ?"
            params.append(mode.value)
        sql += " ORDER BY id DESC LIMIT ? OFFSET ?"
        params.extend([limit if limit is not None else -1, offset])
        rows = self._conn.execute(sql, params).fetchall()
        return [_play_from_row(row) for row in rows]

    async def delete_play_record(self, play_id: int) -> bool:
        cursor = self._conn.execute("DELETE FROM plays WHERE id = ?", (play_id,))
        return cursor.rowcount > 0

    async def query_recent_scores(self, user_id: str, mode: GameMode, limit: int) -> list[int]:
        rows = self._conn.execute(
            "SELECT score FROM plays "
            "WHERE user_id = ? AND mode = ? AND status = 'completed' "
            "ORDER BY completed_at DESC, id DESC "
            "LIMIT ?",
            (user_id, mode.value, limit),
        ).fetchall()
        return [row["score"] for row in rows]

    # -- rolling stats --

    async def upsert_rolling_stat(self, user_id: str, mode: GameMode, played_on: date) -> RollingStat:
        row = self._conn.execute(
            "INSERT INTO rolling_stats (user_id, mode, play_count, last_play_date) VALUES (?, ?, 1, ?) "
            "ON CONFLICT (user_id, mode) DO UPDATE SET "
            "play_count = play_count + 1, "
            "last_play_date = excluded.last_play_date "
            "RETURNING *",
            (user_id, mode.value, _iso(played_on)),
        ).fetchone()
        return _rolling_stat_from_row(row)

    async def get_rolling_stat(self, user_id: str, mode: GameMode) -> RollingStat | None:
        row = self._conn.execute(
            "SELECT * FROM rolling_stats WHERE user_id = ? AND mode = ?",
            (user_id, mode.value),
        ).fetchone()
        return _rolling_stat_from_row(row) if row is not None else None

    async def list_rolling_stats(self, user_id: str) -> list[RollingStat]:
        rows = self._conn.execute(
            "SELECT * FROM rolling_stats WHERE user_id = ? ORDER BY mode",
            (user_id,),
        ).fetchall()
        return [_rolling_stat_from_row(row) for row in rows]

    async def save_rolling_stat(self, stat: RollingStat) -> None:
        self._conn.execute(
            "INSERT INTO rolling_stats ("
            "  user_id, mode, play_count, last_play_date, "
            "  current_short_wma, peak_short_wma, peak_short_wma_date, "
            "  current_long_wma, peak_long_wma, peak_long_wma_date"
            ") VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT (user_id, mode) DO UPDATE SET "
            "play_count = excluded.play_count, "
            "last_play_date = excluded.last_play_date, "
            "current_short_wma = excluded.current_short_wma, "
            "peak_short_wma = excluded.peak_short_wma, "
            "peak_short_wma_date = excluded.peak_short_wma_date, "
            "current_long_wma = excluded.current_long_wma, "
            "peak_long_wma = excluded.peak_long_wma, "
            "peak_long_wma_date = excluded.peak_long_wma_date",
            (
                stat.user_id,
                stat.mode.value,
                stat.play_count,
                _iso(stat.last_play_date),
                stat.short.current,
                stat.short.peak,
                _iso(stat.short.peak_date),
                stat.long.current,
                stat.long.peak,
                _iso(stat.long.peak_date),
            ),
        )

    # -- ledgers --

    async def query_ledger_top(
        self,
        user_id: str,
        mode: GameMode,
        metric: MetricType,
        limit: int | None,
        offset: int = 0,
    ) -> list[BestEntry]:
        rows = self._conn.execute(
            "SELECT * FROM ledger_entries "
            "WHERE user_id = ? AND mode = ? AND metric = ? "
            "ORDER BY value DESC, id ASC "
            "LIMIT ? OFFSET ?",
            (user_id, mode.value, metric.value, limit if limit is not None else -1, offset),
        ).fetchall()
        return [_entry_from_row(row) for row in rows]

    async def insert_ledger_entries(self, rows: Sequence[BestEntryDraft]) -> list[int]:
        entry_ids = []
        for draft in rows:
            cursor = self._conn.execute(
                "INSERT INTO ledger_entries (user_id, mode, metric, value, word, board, play_id, achieved_on) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    draft.user_id,
                    draft.mode.value,
                    draft.metric.value,
                    draft.value,
                    draft.word,
                    draft.board,
                    draft.play_id,
                    _iso(draft.achieved_on),
                ),
            )
            entry_ids.append(cursor.lastrowid)
        return entry_ids

    async def delete_ledger_entries(self, entry_ids: Sequence[int]) -> int:
        if not entry_ids:
            return 0
        cursor = self._conn.execute(
            f"DELETE FROM ledger_entries WHERE id IN ({_placeholders(len(entry_ids))})",  # noqa: S608
            tuple(entry_ids),
        )
        return cursor.rowcount

    async def query_global_ledger_top(
        self,
        mode: GameMode,
        metric: MetricType,
        limit: int,
        user_ids: Sequence[str] | None = None,
    ) -> list[LeaderboardEntry]:
        if user_ids is not None and not user_ids:
            return []
        sql = (
            "SELECT l.user_id, u.username, l.value, l.word, l.board, l.achieved_on "
            "FROM ledger_entries AS l "
            "JOIN users AS u ON u.id = l.user_id "
            "WHERE l.mode = ? AND l.metric = ?"
        )
        params: list[object] = [mode.value, metric.value]
        if user_ids is not None:
            sql += f" AND l.user_id IN ({_placeholders(len(user_ids))})"
            params.extend(user_ids)
        sql += " ORDER BY l.value DESC, l.id ASC LIMIT ?"
        params.append(limit)
        rows = self._conn.execute(sql, params).fetchall()
        return [
            LeaderboardEntry(
                rank=rank,
                user_id=row["user_id"],
                username=row["username"],
                value=row["value"],
                word=row["word"],
                board=row["board"],
                achieved_on=row["achieved_on"],
            )
            for rank, row in enumerate(rows, start=1)
        ]

    async def query_global_wma_top(
        self,
        mode: GameMode,
        slot: WindowSlot,
        kind: WmaKind,
        limit: int,
    ) -> list[LeaderboardEntry]:
        value_col, date_col = _WMA_COLUMNS[(slot, kind)]
        rows = self._conn.execute(
            f"SELECT r.user_id, u.username, r.{value_col} AS value, r.{date_col} AS achieved_on "  # noqa: S608
            "FROM rolling_stats AS r "
            "JOIN users AS u ON u.id = r.user_id "
            f"WHERE r.mode = ? AND r.{value_col} IS NOT NULL "
            f"ORDER BY r.{value_col} DESC, r.{date_col} ASC, r.user_id ASC "
            "LIMIT ?",
            (mode.value, limit),
        ).fetchall()
        return [
            LeaderboardEntry(
                rank=rank,
                user_id=row["user_id"],
                username=row["username"],
                value=row["value"],
                achieved_on=row["achieved_on"],
            )
            for rank, row in enumerate(rows, start=1)
        ]


class SqliteStatsStore(StatsStore):
    """SQLite implementation of StatsStore.

    An asyncio lock serialises units of work on the shared connection, so a
    transaction suspended at an await is never observed half-done by another
    task. Writes use BEGIN IMMEDIATE, which takes SQLite's write lock up front
    and makes concurrent writers from other processes wait (then fail with
    ConflictError once the busy timeout expires).
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[StatsTransaction]:
        async with self._lock:
            conn = self._db.connection
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise _translate_write_error(exc) from exc
            try:
                yield SqliteStatsTransaction(conn)
            except BaseException as exc:
                # Includes CancelledError: a timed-out request leaves no trace.
                self._rollback(conn)
                if isinstance(exc, sqlite3.Error):
                    raise _translate_write_error(exc) from exc
                raise
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback(conn)
                raise _translate_write_error(exc) from exc

    async def run_read(self, operation: Callable[[StatsTransaction], Awaitable[T]]) -> T:
        try:
            return await self._read_once(operation)
        except StoreFailureError as exc:
            logger.warning("read failed, retrying once", error=str(exc))
            return await self._read_once(operation)

    async def _read_once(self, operation: Callable[[StatsTransaction], Awaitable[T]]) -> T:
        async with self._lock:
            conn = self._db.connection
            try:
                conn.execute("BEGIN")
                try:
                    return await operation(SqliteStatsTransaction(conn))
                finally:
                    conn.execute("ROLLBACK")
            except sqlite3.Error as exc:
                raise StoreFailureError(str(exc)) from exc

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if not conn.in_transaction:
            return
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.exception("rollback failed")
