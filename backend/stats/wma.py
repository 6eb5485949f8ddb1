"""Linearly weighted moving average over a player's most recent scores."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from stats.errors import BadInputError

if TYPE_CHECKING:
    from collections.abc import Sequence

_CENTS = Decimal("0.01")


def round_half_up(value: Decimal | float, places: Decimal = _CENTS) -> float:
    """Round to two decimals, halves away from zero (0.125 -> 0.13, unlike round())."""
    return float(Decimal(value).quantize(places, rounding=ROUND_HALF_UP))


def compute_wma(recent_scores: Sequence[float], window: int) -> float | None:
    """Weighted moving average of the newest `window` scores.

    recent_scores must be ordered newest first. The i-th newest score is
    weighted by (window - i); the sum is divided by the triangular number
    window * (window + 1) / 2. Scores beyond the window are ignored.

    Returns None when fewer than `window` scores exist. That is a normal
    "not enough history yet" outcome, not an error.
    """
    if isinstance(window, bool) or window < 1:
        raise BadInputError(f"WMA window must be a positive integer, got {window!r}")
    if len(recent_scores) < window:
        return None

    numerator = sum(
        (Decimal(score) * (window - i) for i, score in enumerate(recent_scores[:window])),
        start=Decimal(0),
    )
    denominator = window * (window + 1) // 2
    return round_half_up(numerator / denominator)


def average_word_score(score: int, word_count: int) -> float | None:
    """Score per word rounded to two decimals, or None when no words were found."""
    if word_count == 0:
        return None
    return round_half_up(Decimal(score) / word_count)
