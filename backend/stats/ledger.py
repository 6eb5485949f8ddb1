"""Bounded top-N ledgers of a player's best values.

Each (user, mode, metric) partition is an independent ledger holding at most
`size` entries. Entries rank by value descending; equal values keep the
older (lower id) entry ahead, so a newcomer tying the last place does not
qualify. There is no cross-metric retention: evicting an entry from one
metric's ledger never consults another metric's ledger.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from shared.dal.models import BestEntryDraft
from stats.errors import BadInputError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date

    from shared.dal.models import BestEntry, GameMode, MetricType
    from shared.dal.stats_store import StatsTransaction

logger = structlog.get_logger()

DEFAULT_LEDGER_SIZE = 10


@dataclass(frozen=True)
class LedgerCandidate:
    value: float
    word: str | None = None
    board: str | None = None


def validate_value(value: float) -> None:
    """Reject values that cannot be ranked: non-numeric, non-finite or negative."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise BadInputError(f"Ledger value must be a number, got {value!r}")
    if not math.isfinite(value) or value < 0:
        raise BadInputError(f"Ledger value must be finite and non-negative, got {value!r}")


def compute_rank(ranked_values: Sequence[float], new_value: float, size: int = DEFAULT_LEDGER_SIZE) -> int | None:
    """1-based rank `new_value` would take among `ranked_values` (sorted descending).

    Scans upward from the bottom while the new value is strictly greater,
    so ties land below existing entries. Returns None when the value would
    not make the top `size`.
    """
    top = list(ranked_values[:size])
    position = len(top)
    while position > 0 and new_value > top[position - 1]:
        position -= 1
    if position >= size:
        return None
    return position + 1


class BestLedger:
    """Top-N ledger operations run inside a store transaction."""

    def __init__(self, size: int = DEFAULT_LEDGER_SIZE) -> None:
        if size < 1:
            raise ValueError("Ledger size must be at least 1")
        self._size = size

    @property
    def size(self) -> int:
        return self._size

    async def top(self, tx: StatsTransaction, user_id: str, mode: GameMode, metric: MetricType) -> list[BestEntry]:
        return await tx.query_ledger_top(user_id, mode, metric, limit=self._size)

    async def get_tenth_best(
        self,
        tx: StatsTransaction,
        user_id: str,
        mode: GameMode,
        metric: MetricType,
    ) -> float | None:
        """Value of the last ranked entry, or None while the ledger is not full.

        Cheap admission check: anything not above this value cannot qualify.
        """
        rows = await tx.query_ledger_top(user_id, mode, metric, limit=1, offset=self._size - 1)
        return rows[0].value if rows else None

    async def rank_for(
        self,
        tx: StatsTransaction,
        user_id: str,
        mode: GameMode,
        metric: MetricType,
        value: float,
    ) -> int | None:
        """Rank `value` would take in the ledger, or None if it does not qualify."""
        validate_value(value)
        threshold = await self.get_tenth_best(tx, user_id, mode, metric)
        if threshold is not None and value <= threshold:
            return None
        entries = await self.top(tx, user_id, mode, metric)
        return compute_rank([e.value for e in entries], value, self._size)

    async def insert_candidates(
        self,
        tx: StatsTransaction,
        user_id: str,
        mode: GameMode,
        metric: MetricType,
        candidates: Sequence[LedgerCandidate],
        *,
        achieved_on: date,
        play_id: int | None = None,
    ) -> list[int]:
        """Append candidates to one ledger, then evict whatever fell out of the top N.

        Returns the ids of the inserted rows (some may already be evicted
        when more than N candidates arrive at once).
        """
        for candidate in candidates:
            validate_value(candidate.value)
        drafts = [
            BestEntryDraft(
                user_id=user_id,
                mode=mode,
                metric=metric,
                value=c.value,
                word=c.word,
                board=c.board,
                play_id=play_id,
                achieved_on=achieved_on,
            )
            for c in candidates
        ]
        return await self.insert_entries(tx, drafts)

    async def insert_entries(self, tx: StatsTransaction, drafts: Sequence[BestEntryDraft]) -> list[int]:
        """Batch insert rows for any partitions, then evict each touched partition."""
        for draft in drafts:
            validate_value(draft.value)
        if not drafts:
            return []

        entry_ids = await tx.insert_ledger_entries(drafts)
        touched = dict.fromkeys((d.user_id, d.mode, d.metric) for d in drafts)
        for user_id, mode, metric in touched:
            await self.evict(tx, user_id, mode, metric)
        return entry_ids

    async def evict(self, tx: StatsTransaction, user_id: str, mode: GameMode, metric: MetricType) -> list[int]:
        """Delete every entry ranked below the top N of one partition."""
        overflow = await tx.query_ledger_top(user_id, mode, metric, limit=None, offset=self._size)
        evicted = [e.entry_id for e in overflow]
        if evicted:
            await tx.delete_ledger_entries(evicted)
            logger.debug("ledger entries evicted", user_id=user_id, mode=mode, metric=metric, entry_ids=evicted)
        return evicted

    async def delete(self, tx: StatsTransaction, entry_ids: Sequence[int]) -> int:
        """Delete entries by id. Already-absent ids are ignored."""
        return await tx.delete_ledger_entries(list(entry_ids))
