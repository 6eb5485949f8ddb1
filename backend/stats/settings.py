"""Stats engine configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.dal.models import MetricType
from shared.validators import StringListEnvSettingsSource, parse_string_list
from stats.config import StatsConfig

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class StatsSettings(BaseSettings):
    model_config = {"env_prefix": "STATS_"}

    # SQLite database file path
    database_path: str = "backend/stats.db"
    busy_timeout_ms: int = Field(default=5000, ge=0)

    short_window: int = 10
    long_window: int = 100
    ledger_size: int = 10
    min_words_for_avg: int = 15
    word_metrics: list[MetricType] = [MetricType.BEST_WORD, MetricType.LONGEST_WORD, MetricType.CRAZIEST_WORD]

    @field_validator("word_metrics", mode="before")
    @classmethod
    def validate_word_metrics(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            StringListEnvSettingsSource(settings_cls, list_fields={"word_metrics"}),
            dotenv_settings,
            file_secret_settings,
        )

    def to_config(self) -> StatsConfig:
        """Build the immutable engine config. Raises ValidationError on inconsistent values."""
        return StatsConfig(
            short_window=self.short_window,
            long_window=self.long_window,
            ledger_size=self.ledger_size,
            min_words_for_avg=self.min_words_for_avg,
            word_metrics=tuple(self.word_metrics),
        )
