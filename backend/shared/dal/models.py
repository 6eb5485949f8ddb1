"""Persistence models for the data access layer."""

from datetime import date, datetime
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, Field, model_validator


class GameMode(StrEnum):
    SHORT = "short"  # short timed session
    LONG = "long"  # long timed session
    FREE = "free"  # untimed free play


class PlayStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"


class MetricType(StrEnum):
    """Ledger partitions. Each metric keeps its own independent top-N per (user, mode)."""

    TOTAL_SCORE = "total_score"
    AVG_WORD_SCORE = "avg_word_score"
    BEST_WORD = "best_word"
    LONGEST_WORD = "longest_word"
    CRAZIEST_WORD = "craziest_word"

    @property
    def is_word(self) -> bool:
        return self in WORD_METRICS


WORD_METRICS = frozenset({MetricType.BEST_WORD, MetricType.LONGEST_WORD, MetricType.CRAZIEST_WORD})


class WindowSlot(StrEnum):
    """Storage slot of a tracked WMA window (window lengths come from config)."""

    SHORT = "short"
    LONG = "long"


class WmaKind(StrEnum):
    CURRENT = "current"
    PEAK = "peak"


class User(BaseModel, frozen=True):
    """Player account; only the counters matter to the stats engine."""

    user_id: str
    username: str
    total_plays: int = 0
    total_words_found: int = 0


class PlayResult(BaseModel, frozen=True):
    """Final fields written to a play record when its session ends."""

    score: int = Field(ge=0)
    word_count: int = Field(ge=0)
    avg_word_score: float | None = None  # None when word_count is 0
    best_word: str | None = None
    best_word_score: int | None = None
    best_word_board: str | None = None
    completed_at: datetime


class PlayRecord(BaseModel, frozen=True):
    """One game attempt. Pending at start, completed exactly once at end."""

    play_id: int
    user_id: str
    mode: GameMode
    status: PlayStatus = PlayStatus.PENDING
    started_at: datetime
    completed_at: datetime | None = None
    score: int | None = None  # None while pending
    word_count: int | None = None
    avg_word_score: float | None = None
    best_word: str | None = None
    best_word_score: int | None = None
    best_word_board: str | None = None

    @model_validator(mode="after")
    def _validate_completion(self) -> Self:
        if self.status == PlayStatus.COMPLETED and (self.score is None or self.word_count is None):
            raise ValueError("Completed play records must have a score and word count")
        return self


class WindowStat(BaseModel, frozen=True):
    current: float | None = None
    peak: float | None = None
    peak_date: date | None = None


class RollingStat(BaseModel, frozen=True):
    """Per (user, mode) rolling aggregates, one WindowStat per tracked window slot."""

    user_id: str
    mode: GameMode
    play_count: int = 0
    last_play_date: date | None = None
    short: WindowStat = WindowStat()
    long: WindowStat = WindowStat()

    def window(self, slot: WindowSlot) -> WindowStat:
        return self.short if slot == WindowSlot.SHORT else self.long

    def with_window(self, slot: WindowSlot, stat: WindowStat) -> Self:
        return self.model_copy(update={slot.value: stat})


class BestEntryDraft(BaseModel, frozen=True):
    """A ledger row that has not been persisted yet."""

    user_id: str
    mode: GameMode
    metric: MetricType
    value: float
    word: str | None = None
    board: str | None = None  # board-position encoding of the word
    play_id: int | None = None
    achieved_on: date


class BestEntry(BestEntryDraft, frozen=True):
    """A persisted ledger row. entry_id order is insertion order (ties keep the oldest)."""

    entry_id: int


class LeaderboardEntry(BaseModel, frozen=True):
    """One row of a global (cross-user) top list."""

    rank: int
    user_id: str
    username: str
    value: float
    word: str | None = None
    board: str | None = None
    achieved_on: date | None = None
