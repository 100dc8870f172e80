"""Stress scoring from PRSA / HRV metrics.

The score starts at 50 and is pushed up or down by the window's
metrics:

* **Personalised** -- with a usable baseline, the percentage drop in DC
  (and SDNN) relative to the user's own calm-period readings drives the
  score.
* **Population** -- without one, fixed literature bands for DC, SDNN and
  mean HR are used instead.

When DC cannot be computed at all the result degrades to a fixed
``insufficient_data`` score of 50.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from stressdetect.analytics.baseline import Baseline
from stressdetect.analytics.features import compute_hrv
from stressdetect.analytics.rr import HeartRateSample
from stressdetect.config import BASE_THRESHOLD
from stressdetect.log import get_logger

logger = get_logger(__name__)


class StressLevel(str, Enum):
    """Categorical stress level."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"
    INSUFFICIENT_DATA = "insufficient_data"
    PHYSICAL_ACTIVITY = "physical_activity"  # movement invalidates HRV
    INSUFFICIENT_CLASSIFICATION = "insufficient_classification"


@dataclass(frozen=True)
class StressMetrics:
    """Scored stress for one window."""

    dc: float | None
    ac: float | None
    sdnn: float | None
    rmssd: float | None
    mean_hr: float | None
    score: int  # 0-100
    level: StressLevel
    is_stressed: bool = False
    personalized: bool = False

    def __repr__(self) -> str:
        dc = f"{self.dc:.2f}ms" if self.dc is not None else "n/a"
        return (
            f"StressMetrics(score={self.score}, level={self.level.value}, "
            f"dc={dc}, stressed={self.is_stressed})"
        )


# ---------------------------------------------------------------------------
# Scoring constants
# ---------------------------------------------------------------------------

BASE_SCORE = 50
DEGRADED_SCORE = 50

# Personalised: points per % change from baseline (negative: a drop raises stress)
W_DC = -0.8
W_SDNN = -0.5

# Population bands: (lower inclusive, upper exclusive, points)
DC_BANDS = [
    (float("-inf"), 2.0, 25),
    (2.0, 5.0, 10),
]
DC_HIGH = 10.0  # dc > DC_HIGH → DC_HIGH_POINTS
DC_HIGH_POINTS = -15

SDNN_BANDS = [
    (float("-inf"), 20.0, 20),
    (20.0, 35.0, 10),
]
SDNN_HIGH = 60.0
SDNN_HIGH_POINTS = -10

HR_HIGH = 90.0
HR_HIGH_POINTS = 10
HR_LOW = 65.0
HR_LOW_POINTS = -10

# Level boundaries (lower inclusive)
LEVEL_MODERATE = 30
LEVEL_HIGH = 50
LEVEL_VERY_HIGH = 70


def percent_change(value: float, base: float) -> float:
    """``100 * (value - base) / base``."""
    return 100.0 * (value - base) / base


def _band_points(value: float, bands: list, high: float, high_points: int) -> int:
    for lower, upper, points in bands:
        if lower <= value < upper:
            return points
    if value > high:
        return high_points
    return 0


def level_for_score(score: int) -> StressLevel:
    """Map a clamped 0-100 score to its level."""
    if score < LEVEL_MODERATE:
        return StressLevel.LOW
    if score < LEVEL_HIGH:
        return StressLevel.MODERATE
    if score < LEVEL_VERY_HIGH:
        return StressLevel.HIGH
    return StressLevel.VERY_HIGH


def _personalized_points(
    dc: float,
    sdnn: float | None,
    baseline: Baseline,
) -> int:
    points = round(W_DC * percent_change(dc, baseline.dc))
    if sdnn is not None and baseline.sdnn != 0:
        points += round(W_SDNN * percent_change(sdnn, baseline.sdnn))
    return points


def _population_points(dc: float, sdnn: float | None, mean_hr: float | None) -> int:
    points = _band_points(dc, DC_BANDS, DC_HIGH, DC_HIGH_POINTS)
    if sdnn is not None:
        points += _band_points(sdnn, SDNN_BANDS, SDNN_HIGH, SDNN_HIGH_POINTS)
    if mean_hr is not None:
        if mean_hr > HR_HIGH:
            points += HR_HIGH_POINTS
        elif mean_hr < HR_LOW:
            points += HR_LOW_POINTS
    return points


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def score_stress(
    dc: float | None,
    sdnn: float | None,
    mean_hr: float | None,
    baseline: Baseline | None = None,
    threshold: int = BASE_THRESHOLD,
    ac: float | None = None,
    rmssd: float | None = None,
) -> StressMetrics:
    """Combine PRSA / HRV metrics into a 0-100 stress score.

    Args:
        dc: Deceleration capacity (ms), None if not computable.
        sdnn: SDNN (ms).
        mean_hr: Mean HR (bpm) over the filtered window.
        baseline: Personal baseline means, or None to use population bands.
        threshold: Sleep-adjusted stress threshold; ``is_stressed`` is
            ``score > threshold``.
        ac: Acceleration capacity, carried through for reporting.
        rmssd: RMSSD, carried through for reporting.
    """
    if dc is None:
        logger.debug("DC unavailable, returning degraded stress result")
        return StressMetrics(
            dc=None, ac=ac, sdnn=sdnn, rmssd=rmssd, mean_hr=mean_hr,
            score=DEGRADED_SCORE,
            level=StressLevel.INSUFFICIENT_DATA,
            is_stressed=DEGRADED_SCORE > threshold,
        )

    personalized = baseline is not None and baseline.dc != 0
    if personalized:
        points = _personalized_points(dc, sdnn, baseline)
    else:
        points = _population_points(dc, sdnn, mean_hr)

    score = max(0, min(100, BASE_SCORE + points))
    level = level_for_score(score)
    logger.debug(
        "Stress score %d (%s, %s branch, threshold %d)",
        score, level.value, "personal" if personalized else "population", threshold,
    )

    return StressMetrics(
        dc=dc, ac=ac, sdnn=sdnn, rmssd=rmssd, mean_hr=mean_hr,
        score=score,
        level=level,
        is_stressed=score > threshold,
        personalized=personalized,
    )


def compute_stress(
    samples: Sequence[HeartRateSample],
    baseline: Baseline | None = None,
    threshold: int = BASE_THRESHOLD,
) -> StressMetrics:
    """Full chain: HR samples → filtered RR → PRSA/HRV → stress score."""
    m = compute_hrv(samples)
    return score_stress(
        m.dc, m.sdnn, m.mean_hr,
        baseline=baseline,
        threshold=threshold,
        ac=m.ac,
        rmssd=m.rmssd,
    )
