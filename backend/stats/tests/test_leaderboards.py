from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shared.dal.errors import StoreFailureError
from shared.dal.models import GameMode, MetricType
from shared.db.stats_store import SqliteStatsTransaction
from stats.config import StatsConfig
from stats.errors import BadInputError
from stats.leaderboards import LeaderboardFilters, LeaderboardService
from stats.sessions import SessionService
from stats.types import FinalResult, WordResult

if TYPE_CHECKING:
    from shared.db import SqliteStatsStore

SMALL = StatsConfig(short_window=2, long_window=3, ledger_size=3)


@pytest.fixture
async def populated(store: SqliteStatsStore, clock, make_user):
    await make_user("u1", "alice")
    await make_user("u2", "bob")
    sessions = SessionService(store, SMALL, clock=clock)
    for user_id, scores in (("u1", [10, 20, 30]), ("u2", [50, 5])):
        for score in scores:
            handle = await sessions.start_session(user_id, GameMode.SHORT)
            words = (WordResult(metric=MetricType.BEST_WORD, word=f"W{score}", score=score // 5),)
            await sessions.end_session(handle.play_id, FinalResult(score=score, word_count=1, words=words), user_id)
    return store


@pytest.fixture
def service(store: SqliteStatsStore) -> LeaderboardService:
    return LeaderboardService(store, SMALL)


class TestLeaderboards:
    async def test_default_covers_every_metric_and_mode(self, service: LeaderboardService, populated):
        boards = await service.get_leaderboards()
        assert list(boards) == [
            "total_score",
            "avg_word_score",
            "best_word",
            "longest_word",
            "craziest_word",
            "current_wma_2",
            "peak_wma_2",
            "current_wma_3",
            "peak_wma_3",
        ]
        assert all(set(by_mode) == set(GameMode) for by_mode in boards.values())

        totals = boards["total_score"][GameMode.SHORT]
        assert [(e.rank, e.username, e.value) for e in totals] == [(1, "bob", 50), (2, "alice", 30), (3, "alice", 20)]
        assert boards["total_score"][GameMode.FREE] == []

    async def test_word_entries_carry_the_word(self, service: LeaderboardService, populated):
        boards = await service.get_leaderboards(LeaderboardFilters(metrics=("best_word",), modes=(GameMode.SHORT,)))
        assert list(boards) == ["best_word"]
        assert [(e.word, e.value) for e in boards["best_word"][GameMode.SHORT]] == [("W50", 10), ("W30", 6), ("W20", 4)]

    async def test_wma_boards(self, service: LeaderboardService, populated):
        filters = LeaderboardFilters(metrics=("current_wma_2", "peak_wma_3"), modes=(GameMode.SHORT,))
        boards = await service.get_leaderboards(filters)
        # alice: (30*2 + 20) / 3, bob: (5*2 + 50) / 3
        assert [(e.username, e.value) for e in boards["current_wma_2"][GameMode.SHORT]] == [
            ("alice", 26.67),
            ("bob", 20.0),
        ]
        # only alice has three plays
        assert [(e.username, e.value) for e in boards["peak_wma_3"][GameMode.SHORT]] == [("alice", 23.33)]

    async def test_user_filters(self, service: LeaderboardService, populated):
        by_id = await service.get_leaderboards(LeaderboardFilters(user_ids=("u1",), modes=(GameMode.SHORT,)))
        by_name = await service.get_leaderboards(LeaderboardFilters(usernames=("ALICE",), modes=(GameMode.SHORT,)))
        assert "current_wma_2" not in by_id
        assert by_id == by_name
        assert {e.username for e in by_id["total_score"][GameMode.SHORT]} == {"alice"}

    async def test_unknown_username_yields_empty_boards(self, service: LeaderboardService, populated):
        boards = await service.get_leaderboards(LeaderboardFilters(usernames=("carol",), metrics=("total_score",)))
        assert all(entries == [] for entries in boards["total_score"].values())

    async def test_wma_with_user_filter_is_rejected(self, service: LeaderboardService, populated):
        filters = LeaderboardFilters(metrics=("total_score", "peak_wma_2"), user_ids=("u1",))
        with pytest.raises(BadInputError, match="peak_wma_2"):
            await service.get_leaderboards(filters)

    async def test_unknown_metric_is_rejected(self, service: LeaderboardService):
        with pytest.raises(BadInputError, match="current_wma_10"):
            await service.get_leaderboards(LeaderboardFilters(metrics=("current_wma_10",)))

    async def test_failure_is_propagated(self, service: LeaderboardService, populated, monkeypatch):
        async def broken(self, *args):
            raise StoreFailureError("disk I/O error")

        monkeypatch.setattr(SqliteStatsTransaction, "query_global_wma_top", broken)
        with pytest.raises(StoreFailureError):
            await service.get_leaderboards()
        monkeypatch.undo()

        boards = await service.get_leaderboards(LeaderboardFilters(metrics=("peak_wma_2",)))
        assert len(boards["peak_wma_2"][GameMode.SHORT]) == 2
