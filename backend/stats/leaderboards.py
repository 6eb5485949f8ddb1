"""Read-only fan-out across global top lists.

Every (metric, mode) board is an independent read task. The store serialises
reads on its connection, so the tasks take turns; the caller gets either the
complete nested mapping or the first error, with the remaining tasks cancelled.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict

from shared.dal.models import GameMode, MetricType, WmaKind
from stats.config import DEFAULT_CONFIG
from stats.errors import BadInputError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shared.dal.models import LeaderboardEntry, WindowSlot
    from shared.dal.stats_store import StatsStore
    from stats.config import StatsConfig

logger = structlog.get_logger()

type Leaderboards = dict[str, dict[GameMode, list[LeaderboardEntry]]]


@dataclass(frozen=True)
class WmaBoard:
    kind: WmaKind
    slot: WindowSlot
    window: int

    @property
    def key(self) -> str:
        return f"{self.kind.value}_wma_{self.window}"


class LeaderboardFilters(BaseModel):
    """Optional narrowing of the leaderboard snapshot. None means "all"."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    modes: tuple[GameMode, ...] | None = None
    metrics: tuple[str, ...] | None = None
    user_ids: tuple[str, ...] | None = None
    usernames: tuple[str, ...] | None = None

    @property
    def is_user_scoped(self) -> bool:
        return self.user_ids is not None or self.usernames is not None


class LeaderboardService:
    def __init__(self, store: StatsStore, config: StatsConfig = DEFAULT_CONFIG) -> None:
        self._store = store
        self._size = config.ledger_size
        self._wma_boards = {
            board.key: board
            for board in (
                WmaBoard(kind=kind, slot=slot, window=window) for slot, window in config.windows for kind in WmaKind
            )
        }

    def available_metrics(self) -> list[str]:
        return [m.value for m in MetricType] + list(self._wma_boards)

    async def get_leaderboards(self, filters: LeaderboardFilters | None = None) -> Leaderboards:
        """Nested mapping metric -> mode -> up to N entries, best first.

        With user filters only ledger metrics are allowed: WMA boards are
        always global. Asking for one together with a user filter raises
        BadInputError; leaving metrics unset drops them from the default set.
        """
        filters = filters or LeaderboardFilters()
        modes = list(dict.fromkeys(filters.modes)) if filters.modes else list(GameMode)
        metrics = self._resolve_metrics(filters)
        user_ids = await self._resolve_user_scope(filters)

        jobs = [(metric, mode) for metric in metrics for mode in modes]
        tasks = [asyncio.create_task(self._fetch_board(metric, mode, user_ids)) for metric, mode in jobs]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            # Drain the siblings so none of their outcomes goes unretrieved.
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.warning("leaderboard fan-out failed", metrics=metrics, modes=modes)
            raise

        boards: Leaderboards = {metric: {} for metric in metrics}
        for (metric, mode), rows in zip(jobs, results, strict=True):
            boards[metric][mode] = rows
        return boards

    def _resolve_metrics(self, filters: LeaderboardFilters) -> list[str]:
        if filters.metrics is None:
            if filters.is_user_scoped:
                return [m.value for m in MetricType]
            return self.available_metrics()

        available = set(self.available_metrics())
        unknown = [m for m in filters.metrics if m not in available]
        if unknown:
            raise BadInputError(f"Unknown leaderboard metric(s): {', '.join(unknown)}")
        metrics = list(dict.fromkeys(filters.metrics))
        if filters.is_user_scoped:
            wma = [m for m in metrics if m in self._wma_boards]
            if wma:
                raise BadInputError(f"WMA leaderboards are global and cannot be filtered by user: {', '.join(wma)}")
        return metrics

    async def _resolve_user_scope(self, filters: LeaderboardFilters) -> list[str] | None:
        if not filters.is_user_scoped:
            return None
        user_ids = list(filters.user_ids or ())
        if filters.usernames:
            usernames = list(filters.usernames)
            users = await self._store.run_read(lambda tx: tx.get_users_by_name(usernames))
            user_ids.extend(u.user_id for u in users)
        return list(dict.fromkeys(user_ids))

    async def _fetch_board(
        self,
        metric: str,
        mode: GameMode,
        user_ids: Sequence[str] | None,
    ) -> list[LeaderboardEntry]:
        board = self._wma_boards.get(metric)
        if board is not None:
            return await self._store.run_read(
                lambda tx: tx.query_global_wma_top(mode, board.slot, board.kind, self._size),
            )
        metric_type = MetricType(metric)
        return await self._store.run_read(
            lambda tx: tx.query_global_ledger_top(mode, metric_type, self._size, user_ids),
        )
