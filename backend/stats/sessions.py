"""Two-phase game session lifecycle.

start_session reserves a pending play record and returns the bars the
player has to beat. end_session completes the record exactly once and, in
the same store transaction, refreshes rolling WMAs, peaks and the player's
top-N ledgers. A crash or timeout anywhere before commit leaves the store
exactly as it was.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from shared.dal.models import BestEntryDraft, MetricType, PlayResult, RollingStat, WindowStat
from stats.config import DEFAULT_CONFIG
from stats.errors import BadInputError, NotFoundError, SessionUnavailableError
from stats.ledger import BestLedger
from stats.peaks import update_peak
from stats.types import Placement, SessionHandle, StatsSummary, WmaSummary, parse_mode
from stats.wma import average_word_score, compute_wma

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date

    from shared.dal.models import GameMode, PlayRecord, WindowSlot
    from shared.dal.stats_store import StatsStore, StatsTransaction
    from stats.config import StatsConfig
    from stats.types import FinalResult

logger = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SessionService:
    """Orchestrate WMA, peak and ledger updates across a play's lifecycle."""

    def __init__(
        self,
        store: StatsStore,
        config: StatsConfig = DEFAULT_CONFIG,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._config = config
        self._ledger = BestLedger(config.ledger_size)
        self._clock = clock

    async def start_session(self, user_id: str, mode: GameMode | str) -> SessionHandle:
        """Reserve a pending play and bump the (user, mode) play counters."""
        game_mode = parse_mode(mode)
        started_at = self._clock()

        async with self._store.transaction() as tx:
            if await tx.get_user(user_id) is None:
                raise NotFoundError(f"No user: {user_id}")
            play_id = await tx.insert_play_record(user_id, game_mode, started_at)
            stat = await tx.upsert_rolling_stat(user_id, game_mode, started_at.date())
            await tx.increment_user_plays(user_id)
            bars: dict[MetricType, float | None] = {}
            for metric in self._config.word_metrics:
                bars[metric] = await self._ledger.get_tenth_best(tx, user_id, game_mode, metric)

        logger.info("session started", play_id=play_id, user_id=user_id, mode=game_mode, play_count=stat.play_count)
        return SessionHandle(
            play_id=play_id,
            user_id=user_id,
            mode=game_mode,
            started_at=started_at,
            play_count=stat.play_count,
            last_play_date=stat.last_play_date,
            word_score_bars=bars,
        )

    async def end_session(self, play_id: int, result: FinalResult, caller_user_id: str) -> StatsSummary:
        """Complete a pending play and refresh every aggregate that depends on it.

        Raises SessionUnavailableError when the play does not exist, belongs
        to someone else, or was already completed.
        """
        self._validate_words(result)
        completed_at = self._clock()
        today = completed_at.date()
        avg_word_score = average_word_score(result.score, result.word_count)

        async with self._store.transaction() as tx:
            play = await self._complete_play(tx, play_id, result, caller_user_id, avg_word_score, completed_at)
            await tx.add_words_found(play.user_id, result.word_count)
            current_wmas = await self._compute_wmas(tx, play)
            stat, wma = await self._refresh_rolling_stat(tx, play, current_wmas, today)
            placements = await self._update_ledgers(tx, play, result, avg_word_score, today)

        below_threshold = [window for slot, window in self._config.windows if current_wmas[slot] is None]
        logger.info(
            "session completed",
            play_id=play.play_id,
            user_id=play.user_id,
            mode=play.mode,
            score=result.score,
            placements=[p.metric for p in placements],
        )
        return StatsSummary(
            play_id=play.play_id,
            user_id=play.user_id,
            mode=play.mode,
            score=result.score,
            word_count=result.word_count,
            avg_word_score=avg_word_score,
            play_count=stat.play_count,
            last_play_date=stat.last_play_date,
            wma=wma,
            below_threshold=below_threshold,
            placements=placements,
        )

    # -- pipeline stages --

    def _validate_words(self, result: FinalResult) -> None:
        seen: set[MetricType] = set()
        for word in result.words:
            if word.metric not in self._config.word_metrics:
                raise BadInputError(f"Metric {word.metric.value!r} is not a tracked word category")
            if word.metric in seen:
                raise BadInputError(f"Only one word per category is allowed, got several for {word.metric.value!r}")
            seen.add(word.metric)

    async def _complete_play(
        self,
        tx: StatsTransaction,
        play_id: int,
        result: FinalResult,
        caller_user_id: str,
        avg_word_score: float | None,
        completed_at: datetime,
    ) -> PlayRecord:
        best = result.best_word()
        play = await tx.complete_play_record(
            play_id,
            PlayResult(
                score=result.score,
                word_count=result.word_count,
                avg_word_score=avg_word_score,
                best_word=best.word if best else None,
                best_word_score=best.score if best else None,
                best_word_board=best.board if best else None,
                completed_at=completed_at,
            ),
            expected_owner=caller_user_id,
        )
        if play is None:
            logger.info("session completion rejected", play_id=play_id, caller_user_id=caller_user_id)
            raise SessionUnavailableError
        return play

    async def _compute_wmas(self, tx: StatsTransaction, play: PlayRecord) -> dict[WindowSlot, float | None]:
        # Runs after the completion write in the same transaction, so the new score is scores[0].
        scores = await tx.query_recent_scores(play.user_id, play.mode, self._config.recent_score_limit)
        return {slot: compute_wma(scores, window) for slot, window in self._config.windows}

    async def _refresh_rolling_stat(
        self,
        tx: StatsTransaction,
        play: PlayRecord,
        current_wmas: dict[WindowSlot, float | None],
        today: date,
    ) -> tuple[RollingStat, list[WmaSummary]]:
        stat = await tx.get_rolling_stat(play.user_id, play.mode)
        if stat is None:
            # The row can be missing if an administrator removed it mid-session.
            stat = RollingStat(user_id=play.user_id, mode=play.mode, play_count=1, last_play_date=today)

        summaries = []
        for slot, window in self._config.windows:
            current = current_wmas[slot]
            stored = stat.window(slot)
            if current is None:
                # Too little history: the window has no current value, only its peak.
                stat = stat.with_window(slot, stored.model_copy(update={"current": None}))
                continue
            peak = update_peak(current, stored.peak, stored.peak_date, today)
            stat = stat.with_window(slot, WindowStat(current=current, peak=peak.peak, peak_date=peak.peak_date))
            if peak.is_new_peak:
                logger.info("new peak wma", user_id=play.user_id, mode=play.mode, window=window, peak=peak.peak)
            summaries.append(
                WmaSummary(
                    window=window,
                    current=current,
                    peak=peak.peak,
                    peak_date=peak.peak_date,
                    is_new_peak=peak.is_new_peak,
                ),
            )

        await tx.save_rolling_stat(stat)
        return stat, summaries

    def _ledger_candidates(
        self,
        play: PlayRecord,
        result: FinalResult,
        avg_word_score: float | None,
        today: date,
    ) -> list[BestEntryDraft]:
        def draft(metric: MetricType, value: float, word: str | None = None, board: str | None = None) -> BestEntryDraft:
            return BestEntryDraft(
                user_id=play.user_id,
                mode=play.mode,
                metric=metric,
                value=value,
                word=word,
                board=board,
                play_id=play.play_id,
                achieved_on=today,
            )

        candidates = [draft(MetricType.TOTAL_SCORE, result.score)]
        if avg_word_score is not None and result.word_count >= self._config.min_words_for_avg:
            candidates.append(draft(MetricType.AVG_WORD_SCORE, avg_word_score))
        candidates.extend(draft(w.metric, w.score, w.word, w.board) for w in result.words)
        return candidates

    async def _update_ledgers(
        self,
        tx: StatsTransaction,
        play: PlayRecord,
        result: FinalResult,
        avg_word_score: float | None,
        today: date,
    ) -> list[Placement]:
        qualifying: list[BestEntryDraft] = []
        placements: list[Placement] = []
        for candidate in self._ledger_candidates(play, result, avg_word_score, today):
            rank = await self._ledger.rank_for(tx, play.user_id, play.mode, candidate.metric, candidate.value)
            if rank is None:
                continue
            qualifying.append(candidate)
            placements.append(Placement(metric=candidate.metric, rank=rank, value=candidate.value, word=candidate.word))

        # All inserts land together, then each touched ledger is trimmed back to size.
        await self._ledger.insert_entries(tx, qualifying)
        return placements
