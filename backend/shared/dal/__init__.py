"""Data access layer: store interfaces, persistence models and store errors."""

from shared.dal.errors import ConflictError, StoreError, StoreFailureError
from shared.dal.models import (
    WORD_METRICS,
    BestEntry,
    BestEntryDraft,
    GameMode,
    LeaderboardEntry,
    MetricType,
    PlayRecord,
    PlayResult,
    PlayStatus,
    RollingStat,
    User,
    WindowSlot,
    WindowStat,
    WmaKind,
)
from shared.dal.stats_store import StatsStore, StatsTransaction

__all__ = [
    "WORD_METRICS",
    "BestEntry",
    "BestEntryDraft",
    "ConflictError",
    "GameMode",
    "LeaderboardEntry",
    "MetricType",
    "PlayRecord",
    "PlayResult",
    "PlayStatus",
    "RollingStat",
    "StatsStore",
    "StatsTransaction",
    "StoreError",
    "StoreFailureError",
    "User",
    "WindowSlot",
    "WindowStat",
    "WmaKind",
]
