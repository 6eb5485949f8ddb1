"""Input and output models for the stats engine operations."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from shared.dal.models import GameMode, MetricType
from stats.errors import BadInputError


class WordResult(BaseModel):
    """A word the client reports for one word category."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    metric: MetricType
    word: str = Field(min_length=1, max_length=64)
    score: int = Field(ge=0)
    board: str | None = Field(default=None, max_length=256)  # board-position encoding


class FinalResult(BaseModel):
    """Results submitted when a session ends."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    score: int = Field(ge=0)
    word_count: int = Field(ge=0)
    words: tuple[WordResult, ...] = ()

    def best_word(self) -> WordResult | None:
        """Highest-scoring submitted word (first one wins on ties)."""
        best = None
        for word in self.words:
            if best is None or word.score > best.score:
                best = word
        return best


class SessionHandle(BaseModel, frozen=True):
    """Returned by start_session: the reserved play plus the bars to beat."""

    play_id: int
    user_id: str
    mode: GameMode
    started_at: datetime
    play_count: int
    last_play_date: date | None
    # 10th-best value per word category; None while the ledger holds fewer entries
    word_score_bars: dict[MetricType, float | None]


class WmaSummary(BaseModel, frozen=True):
    window: int
    current: float
    peak: float
    peak_date: date | None
    is_new_peak: bool


class Placement(BaseModel, frozen=True):
    """Where a value from this play landed in the player's own top list."""

    metric: MetricType
    rank: int
    value: float
    word: str | None = None


class StatsSummary(BaseModel, frozen=True):
    """Returned by end_session.

    Windows with too little history appear only in below_threshold, never
    as zero. avg_word_score is None when no words were found.
    """

    play_id: int
    user_id: str
    mode: GameMode
    score: int
    word_count: int
    avg_word_score: float | None
    play_count: int
    last_play_date: date | None
    wma: list[WmaSummary]
    below_threshold: list[int]
    placements: list[Placement]


def parse_mode(value: GameMode | str) -> GameMode:
    try:
        return GameMode(value)
    except ValueError:
        allowed = ", ".join(m.value for m in GameMode)
        raise BadInputError(f"Unknown game mode {value!r}; expected one of: {allowed}") from None


def parse_metric(value: MetricType | str) -> MetricType:
    try:
        return MetricType(value)
    except ValueError:
        allowed = ", ".join(m.value for m in MetricType)
        raise BadInputError(f"Unknown metric type {value!r}; expected one of: {allowed}") from None
