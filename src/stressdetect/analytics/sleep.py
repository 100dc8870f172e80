"""Sleep-based stress threshold adjustment.

Short sleep makes the detector more sensitive (lower threshold); long
sleep makes it more tolerant.  No model, just the ratio of last night's
sleep to the user's personal average.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

from stressdetect.config import BASE_THRESHOLD, SLEEP_BASELINE_HOURS


class SleepQuality(str, Enum):
    """Sleep quality relative to the personal baseline."""

    VERY_POOR = "very_poor"
    POOR = "poor"
    NORMAL = "normal"
    GOOD = "good"
    EXCELLENT = "excellent"
    UNKNOWN = "unknown"


class SleepAdjustment(NamedTuple):
    threshold: int
    quality: SleepQuality


# (ratio upper bound, inclusive?, threshold factor, quality)
RATIO_BANDS = [
    (0.75, False, 0.80, SleepQuality.VERY_POOR),
    (0.90, False, 0.85, SleepQuality.POOR),
    (1.10, True, 1.00, SleepQuality.NORMAL),
    (1.20, True, 1.05, SleepQuality.GOOD),
]
EXCELLENT_FACTOR = 1.08


def adjust_threshold(
    sleep_hours: float | None,
    baseline_hours: float = SLEEP_BASELINE_HOURS,
    base_threshold: int = BASE_THRESHOLD,
) -> SleepAdjustment:
    """Map last night's sleep to an adjusted stress threshold.

    Args:
        sleep_hours: Hours slept last night, or None if unknown.
        baseline_hours: Personal average sleep.
        base_threshold: Threshold for normal sleep.

    Returns:
        ``(threshold, quality)``; ``(base_threshold, UNKNOWN)`` when either
        input is missing or non-positive.
    """
    if sleep_hours is None or sleep_hours <= 0 or baseline_hours <= 0:
        return SleepAdjustment(base_threshold, SleepQuality.UNKNOWN)

    ratio = sleep_hours / baseline_hours
    for upper, inclusive, factor, quality in RATIO_BANDS:
        if ratio < upper or (inclusive and ratio == upper):
            return SleepAdjustment(round(base_threshold * factor), quality)
    return SleepAdjustment(round(base_threshold * EXCELLENT_FACTOR), SleepQuality.EXCELLENT)
