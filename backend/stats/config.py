"""Immutable engine configuration, built once and injected into the services."""

from typing import Self

from pydantic import BaseModel, Field, model_validator

from shared.dal.models import MetricType, WindowSlot


class StatsConfig(BaseModel, frozen=True):
    short_window: int = Field(default=10, ge=1)
    long_window: int = Field(default=100, ge=1)
    ledger_size: int = Field(default=10, ge=1)
    # Minimum words in a play before its average word score may enter the ledger.
    min_words_for_avg: int = Field(default=15, ge=0)
    word_metrics: tuple[MetricType, ...] = (
        MetricType.BEST_WORD,
        MetricType.LONGEST_WORD,
        MetricType.CRAZIEST_WORD,
    )

    @model_validator(mode="after")
    def _validate_shape(self) -> Self:
        if self.short_window >= self.long_window:
            raise ValueError("short_window must be smaller than long_window")
        if len(set(self.word_metrics)) != len(self.word_metrics):
            raise ValueError("word_metrics must not contain duplicates")
        non_word = [m.value for m in self.word_metrics if not m.is_word]
        if non_word:
            raise ValueError(f"word_metrics may only name word categories, got {non_word}")
        return self

    @property
    def windows(self) -> tuple[tuple[WindowSlot, int], ...]:
        """Tracked WMA windows as (storage slot, length), shortest first."""
        return ((WindowSlot.SHORT, self.short_window), (WindowSlot.LONG, self.long_window))

    @property
    def recent_score_limit(self) -> int:
        """How many recent scores are read per play; nothing older can affect a WMA."""
        return self.long_window


DEFAULT_CONFIG = StatsConfig()
