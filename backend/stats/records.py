"""Thin record-level operations: users, play history, rolling stats and ledger rows."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from shared.dal.models import User
from stats.config import DEFAULT_CONFIG
from stats.errors import BadInputError, NotFoundError
from stats.ledger import BestLedger
from stats.types import parse_metric, parse_mode

if TYPE_CHECKING:
    from shared.dal.models import BestEntry, GameMode, MetricType, PlayRecord, RollingStat
    from shared.dal.stats_store import StatsStore
    from stats.config import StatsConfig

logger = structlog.get_logger()

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
MAX_PAGE_SIZE = 100


def _validate_page(limit: int | None, offset: int) -> None:
    if limit is not None and not 1 <= limit <= MAX_PAGE_SIZE:
        raise BadInputError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if offset < 0:
        raise BadInputError("offset must not be negative")


class RecordsService:
    """Passthrough reads and administrative deletes around the store."""

    def __init__(self, store: StatsStore, config: StatsConfig = DEFAULT_CONFIG) -> None:
        self._store = store
        self._ledger = BestLedger(config.ledger_size)

    async def create_user(self, username: str) -> User:
        username = username.strip()
        if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
            raise BadInputError(
                f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters",
            )
        user = User(user_id=str(uuid4()), username=username)
        try:
            async with self._store.transaction() as tx:
                await tx.create_user(user)
        except ValueError as e:
            raise BadInputError(str(e)) from e
        logger.info("user created", user_id=user.user_id)
        return user

    async def get_user(self, user_id: str) -> User:
        user = await self._store.run_read(lambda tx: tx.get_user(user_id))
        if user is None:
            raise NotFoundError(f"No user: {user_id}")
        return user

    async def list_plays(
        self,
        user_id: str,
        mode: GameMode | str | None = None,
        limit: int | None = 20,
        offset: int = 0,
    ) -> list[PlayRecord]:
        game_mode = parse_mode(mode) if mode is not None else None
        _validate_page(limit, offset)
        return await self._store.run_read(lambda tx: tx.list_play_records(user_id, game_mode, limit, offset))

    async def get_play(self, play_id: int) -> PlayRecord:
        play = await self._store.run_read(lambda tx: tx.get_play_record(play_id))
        if play is None:
            raise NotFoundError(f"No play: {play_id}")
        return play

    async def delete_play(self, play_id: int) -> None:
        """Administrator removal of a play record. Ledger rows it produced are kept."""
        async with self._store.transaction() as tx:
            deleted = await tx.delete_play_record(play_id)
        if not deleted:
            raise NotFoundError(f"No play: {play_id}")
        logger.info("play deleted", play_id=play_id)

    async def get_rolling_stats(self, user_id: str, mode: GameMode | str | None = None) -> list[RollingStat]:
        game_mode = parse_mode(mode) if mode is not None else None
        stats = await self._store.run_read(lambda tx: tx.list_rolling_stats(user_id))
        if game_mode is not None:
            stats = [s for s in stats if s.mode == game_mode]
        return stats

    async def get_best_entries(
        self,
        user_id: str,
        mode: GameMode | str,
        metric: MetricType | str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[BestEntry]:
        game_mode = parse_mode(mode)
        metric_type = parse_metric(metric)
        _validate_page(limit, offset)
        size = self._ledger.size
        if offset >= size:
            return []
        page = size - offset if limit is None else min(limit, size - offset)
        return await self._store.run_read(
            lambda tx: tx.query_ledger_top(user_id, game_mode, metric_type, limit=page, offset=offset),
        )

    async def get_tenth_best(self, user_id: str, mode: GameMode | str, metric: MetricType | str) -> float | None:
        game_mode = parse_mode(mode)
        metric_type = parse_metric(metric)
        return await self._store.run_read(
            lambda tx: self._ledger.get_tenth_best(tx, user_id, game_mode, metric_type),
        )

    async def delete_best_entry(self, entry_id: int) -> None:
        """Idempotent: deleting an entry that is already gone is not an error."""
        async with self._store.transaction() as tx:
            removed = await self._ledger.delete(tx, [entry_id])
        logger.info("ledger entry deleted", entry_id=entry_id, removed=removed)
