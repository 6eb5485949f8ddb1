"""Peak tracking for rolling statistics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import date


@dataclass(frozen=True)
class PeakUpdate:
    peak: float
    peak_date: date | None
    is_new_peak: bool


def update_peak(
    current: float,
    stored_peak: float | None,
    stored_peak_date: date | None,
    today: date,
) -> PeakUpdate:
    """Decide whether `current` becomes the new peak.

    Only a strictly greater value is a new peak; ties keep the original date.
    A missing stored peak always yields a new peak.
    """
    if stored_peak is None or current > stored_peak:
        return PeakUpdate(peak=current, peak_date=today, is_new_peak=True)
    return PeakUpdate(peak=stored_peak, peak_date=stored_peak_date, is_new_peak=False)
