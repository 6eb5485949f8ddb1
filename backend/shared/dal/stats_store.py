"""Abstract interface for stats persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence
    from contextlib import AbstractAsyncContextManager
    from datetime import date, datetime

    from shared.dal.models import (
        BestEntry,
        BestEntryDraft,
        GameMode,
        LeaderboardEntry,
        MetricType,
        PlayRecord,
        PlayResult,
        RollingStat,
        User,
        WindowSlot,
        WmaKind,
    )

T = TypeVar("T")


class StatsTransaction(ABC):
    """Operations available inside one store transaction.

    Every call is a store round-trip. Writes become visible to other
    transactions only when the enclosing transaction commits.
    """

    # -- users --

    @abstractmethod
    async def create_user(self, user: User) -> None: ...

    @abstractmethod
    async def get_user(self, user_id: str) -> User | None: ...

    @abstractmethod
    async def get_users_by_name(self, usernames: Sequence[str]) -> list[User]: ...

    @abstractmethod
    async def increment_user_plays(self, user_id: str) -> None: ...

    @abstractmethod
    async def add_words_found(self, user_id: str, count: int) -> None: ...

    # -- play records --

    @abstractmethod
    async def insert_play_record(self, user_id: str, mode: GameMode, started_at: datetime) -> int: ...

    @abstractmethod
    async def complete_play_record(
        self,
        play_id: int,
        result: PlayResult,
        expected_owner: str,
    ) -> PlayRecord | None:
        """Complete a pending record owned by expected_owner.

        Returns None when the record is missing, owned by someone else,
        or already completed. The three cases are not distinguished.
        """

    @abstractmethod
    async def get_play_record(self, play_id: int) -> PlayRecord | None: ...

    @abstractmethod
    async def list_play_records(
        self,
        user_id: str,
        mode: GameMode | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[PlayRecord]: ...

    @abstractmethod
    async def delete_play_record(self, play_id: int) -> bool: ...

    @abstractmethod
    async def query_recent_scores(self, user_id: str, mode: GameMode, limit: int) -> list[int]:
        """Scores of completed plays, newest first."""

    # -- rolling stats --

    @abstractmethod
    async def upsert_rolling_stat(self, user_id: str, mode: GameMode, played_on: date) -> RollingStat:
        """Create the row with play_count=1 or increment it, setting last_play_date."""

    @abstractmethod
    async def get_rolling_stat(self, user_id: str, mode: GameMode) -> RollingStat | None: ...

    @abstractmethod
    async def list_rolling_stats(self, user_id: str) -> list[RollingStat]: ...

    @abstractmethod
    async def save_rolling_stat(self, stat: RollingStat) -> None: ...

    # -- ledgers --

    @abstractmethod
    async def query_ledger_top(
        self,
        user_id: str,
        mode: GameMode,
        metric: MetricType,
        limit: int | None,
        offset: int = 0,
    ) -> list[BestEntry]:
        """Entries ordered by value descending, ties by insertion order."""

    @abstractmethod
    async def insert_ledger_entries(self, rows: Sequence[BestEntryDraft]) -> list[int]: ...

    @abstractmethod
    async def delete_ledger_entries(self, entry_ids: Sequence[int]) -> int:
        """Delete by id. Missing ids are ignored; returns the number removed."""

    @abstractmethod
    async def query_global_ledger_top(
        self,
        mode: GameMode,
        metric: MetricType,
        limit: int,
        user_ids: Sequence[str] | None = None,
    ) -> list[LeaderboardEntry]: ...

    @abstractmethod
    async def query_global_wma_top(
        self,
        mode: GameMode,
        slot: WindowSlot,
        kind: WmaKind,
        limit: int,
    ) -> list[LeaderboardEntry]: ...


class StatsStore(ABC):
    """Transactional store behind the stats engine.

    Implementations can use SQLite, PostgreSQL, etc.
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StatsTransaction]:
        """Open a write transaction. Commits on normal exit, rolls back on any exception."""

    @abstractmethod
    async def run_read(self, operation: Callable[[StatsTransaction], Awaitable[T]]) -> T:
        """Run a read-only operation, retrying it once on StoreFailureError."""
