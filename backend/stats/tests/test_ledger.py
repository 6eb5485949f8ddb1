from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

import pytest

from shared.dal.models import BestEntryDraft, GameMode, MetricType
from stats.errors import BadInputError
from stats.ledger import BestLedger, LedgerCandidate, compute_rank, validate_value

if TYPE_CHECKING:
    from shared.db import SqliteStatsStore

TODAY = date(2026, 3, 1)
TOTAL = MetricType.TOTAL_SCORE


class TestComputeRank:
    def test_empty_ledger_ranks_first(self):
        assert compute_rank([], 5) == 1

    def test_greater_than_all_ranks_first(self):
        assert compute_rank([90, 80, 70], 100) == 1

    def test_smaller_than_all_appends_when_not_full(self):
        assert compute_rank([90, 80, 70], 10) == 4

    def test_middle_position(self):
        assert compute_rank([90, 80, 70, 60], 75) == 3

    def test_tie_lands_below_existing(self):
        assert compute_rank([90, 80, 70], 80) == 3

    def test_full_ledger_rejects_value_not_above_last(self):
        full = [100, 90, 80, 70, 60, 50, 40, 30, 20, 10]
        assert compute_rank(full, 10) is None
        assert compute_rank(full, 5) is None
        assert compute_rank(full, 11) == 10

    def test_custom_size(self):
        assert compute_rank([3, 2], 1, size=2) is None
        assert compute_rank([3, 2], 1, size=3) == 3


class TestValidateValue:
    @pytest.mark.parametrize("value", [float("nan"), float("inf"), -1, -0.5, True, "10", None])
    def test_rejects_unrankable_values(self, value):
        with pytest.raises(BadInputError):
            validate_value(value)

    @pytest.mark.parametrize("value", [0, 0.0, 12, 33.33])
    def test_accepts_non_negative_numbers(self, value):
        validate_value(value)


def _draft(value: float, metric: MetricType = TOTAL, user_id: str = "u1", word: str | None = None) -> BestEntryDraft:
    return BestEntryDraft(
        user_id=user_id,
        mode=GameMode.SHORT,
        metric=metric,
        value=value,
        word=word,
        achieved_on=TODAY,
    )


@pytest.fixture
async def user(make_user):
    return await make_user()


class TestBestLedger:
    async def test_tenth_best_is_none_until_full(self, store: SqliteStatsStore, user):
        ledger = BestLedger()
        async with store.transaction() as tx:
            await ledger.insert_entries(tx, [_draft(v) for v in range(1, 10)])
            assert await ledger.get_tenth_best(tx, "u1", GameMode.SHORT, TOTAL) is None
            await ledger.insert_entries(tx, [_draft(100)])
            assert await ledger.get_tenth_best(tx, "u1", GameMode.SHORT, TOTAL) == 1

    async def test_never_exceeds_size(self, store: SqliteStatsStore, user):
        ledger = BestLedger()
        async with store.transaction() as tx:
            for value in range(1, 26):
                await ledger.insert_entries(tx, [_draft(value)])
            top = await ledger.top(tx, "u1", GameMode.SHORT, TOTAL)
            overflow = await tx.query_ledger_top("u1", GameMode.SHORT, TOTAL, limit=None)
        assert [e.value for e in top] == list(range(25, 15, -1))
        assert len(overflow) == 10

    async def test_batch_larger_than_size_is_trimmed(self, store: SqliteStatsStore, user):
        ledger = BestLedger(size=3)
        async with store.transaction() as tx:
            ids = await ledger.insert_entries(tx, [_draft(v) for v in (5, 1, 4, 2, 3)])
            top = await tx.query_ledger_top("u1", GameMode.SHORT, TOTAL, limit=None)
        assert len(ids) == 5
        assert [e.value for e in top] == [5, 4, 3]

    async def test_full_ledger_insert_evicts_eleventh(self, store: SqliteStatsStore, user):
        ledger = BestLedger()
        existing = [980, 900, 850, 800, 700, 650, 600, 560, 500, 480]
        async with store.transaction() as tx:
            await ledger.insert_entries(tx, [_draft(v) for v in existing])
            rank = await ledger.rank_for(tx, "u1", GameMode.SHORT, TOTAL, 500.5)
            await ledger.insert_entries(tx, [_draft(500.5)])
            top = await ledger.top(tx, "u1", GameMode.SHORT, TOTAL)
        assert rank == 9
        assert [e.value for e in top] == [980, 900, 850, 800, 700, 650, 600, 560, 500.5, 500]

    async def test_ties_keep_older_entry_ahead(self, store: SqliteStatsStore, user):
        ledger = BestLedger(size=2)
        async with store.transaction() as tx:
            await ledger.insert_entries(tx, [_draft(50, word="first"), _draft(40, word="second")])
            assert await ledger.rank_for(tx, "u1", GameMode.SHORT, TOTAL, 40) is None
            assert await ledger.rank_for(tx, "u1", GameMode.SHORT, TOTAL, 50) == 2
            await ledger.insert_entries(tx, [_draft(50, word="third")])
            top = await ledger.top(tx, "u1", GameMode.SHORT, TOTAL)
        assert [e.word for e in top] == ["first", "third"]

    async def test_metrics_are_independent(self, store: SqliteStatsStore, user):
        ledger = BestLedger(size=2)
        async with store.transaction() as tx:
            await ledger.insert_entries(tx, [_draft(10), _draft(20)])
            await ledger.insert_entries(tx, [_draft(1, metric=MetricType.BEST_WORD, word="cat")])
            await ledger.insert_entries(tx, [_draft(30), _draft(40)])
            words = await ledger.top(tx, "u1", GameMode.SHORT, MetricType.BEST_WORD)
            totals = await ledger.top(tx, "u1", GameMode.SHORT, TOTAL)
        assert [e.word for e in words] == ["cat"]
        assert [e.value for e in totals] == [40, 30]

    async def test_insert_candidates(self, store: SqliteStatsStore, user):
        ledger = BestLedger()
        async with store.transaction() as tx:
            await ledger.insert_candidates(
                tx,
                "u1",
                GameMode.FREE,
                MetricType.LONGEST_WORD,
                [LedgerCandidate(value=14, word="quizzical", board="a1b2")],
                achieved_on=TODAY,
                play_id=7,
            )
            top = await ledger.top(tx, "u1", GameMode.FREE, MetricType.LONGEST_WORD)
        assert len(top) == 1
        assert top[0].word == "quizzical"
        assert top[0].board == "a1b2"
        assert top[0].play_id == 7
        assert top[0].achieved_on == TODAY

    async def test_rejects_nan_and_negative(self, store: SqliteStatsStore, user):
        ledger = BestLedger()
        async with store.transaction() as tx:
            with pytest.raises(BadInputError):
                await ledger.rank_for(tx, "u1", GameMode.SHORT, TOTAL, float("nan"))
            with pytest.raises(BadInputError):
                await ledger.insert_candidates(
                    tx,
                    "u1",
                    GameMode.SHORT,
                    TOTAL,
                    [LedgerCandidate(value=-3)],
                    achieved_on=TODAY,
                )

    async def test_delete_is_idempotent(self, store: SqliteStatsStore, user):
        ledger = BestLedger()
        async with store.transaction() as tx:
            [entry_id] = await ledger.insert_entries(tx, [_draft(10)])
            assert await ledger.delete(tx, [entry_id]) == 1
            assert await ledger.delete(tx, [entry_id]) == 0
            assert await ledger.delete(tx, []) == 0

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError, match="at least 1"):
            BestLedger(size=0)
