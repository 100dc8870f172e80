"""HRV statistics and window-level heart-rate features.

This is the shared foundation for the scorer and the calibrator.  It provides:
  - Time-domain HRV metrics (SDNN, RMSSD) and mean HR from RR intervals
  - Raw-bpm window statistics used as activity-classifier features
  - The full RR → ectopic filter → PRSA/HRV chain (:func:`compute_hrv`)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from stressdetect.analytics.prsa import compute_dc_ac
from stressdetect.analytics.rr import HeartRateSample, valid_rr
from stressdetect.config import ECTOPIC_THRESHOLD, MIN_RR_INTERVALS


# ---------------------------------------------------------------------------
# HRV metrics
# ---------------------------------------------------------------------------


def compute_rmssd(rr_intervals: Sequence[float]) -> float | None:
    """Root mean square of successive RR-interval differences (ms).

    Returns None if fewer than 2 intervals are provided.
    """
    if len(rr_intervals) < 2:
        return None
    arr = np.asarray(rr_intervals, dtype=np.float64)
    diffs = np.diff(arr)
    return float(np.sqrt(np.mean(diffs ** 2)))


def sdnn(rr_intervals: Sequence[float]) -> float | None:
    """Standard deviation of NN (RR) intervals (ms), n-1 normalised.

    Returns None if fewer than 2 intervals.
    """
    if len(rr_intervals) < 2:
        return None
    arr = np.asarray(rr_intervals, dtype=np.float64)
    return float(np.std(arr, ddof=1))


def mean_hr(rr_intervals: Sequence[float]) -> float | None:
    """Mean heart rate (bpm) implied by the mean RR interval."""
    if len(rr_intervals) == 0:
        return None
    mean_rr = float(np.mean(np.asarray(rr_intervals, dtype=np.float64)))
    if mean_rr <= 0:
        return None
    return 60000.0 / mean_rr


def hr_stats(values: Sequence[float]) -> tuple[float | None, float | None]:
    """Mean and sample std of a window of raw readings (bpm or movement).

    Every value counts, zeros included; RR cleaning happens in
    :func:`~stressdetect.analytics.rr.hr_to_rr`, not here.  ``mean`` is
    None for an empty window, ``std`` is None with fewer than 2 readings.
    """
    arr = np.asarray(values, dtype=np.float64)
    if len(arr) == 0:
        return None, None
    mean = float(np.mean(arr))
    std = float(np.std(arr, ddof=1)) if len(arr) >= 2 else None
    return mean, std


# ---------------------------------------------------------------------------
# Full chain
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HRVMetrics:
    """PRSA + time-domain HRV metrics for one window."""

    dc: float | None
    ac: float | None
    sdnn: float | None
    rmssd: float | None
    mean_hr: float | None
    n_valid: int  # RR intervals surviving the ectopic filter

    @property
    def sufficient(self) -> bool:
        return self.n_valid >= MIN_RR_INTERVALS


def compute_hrv(
    samples: Sequence[HeartRateSample],
    ectopic_threshold: float = ECTOPIC_THRESHOLD,
) -> HRVMetrics:
    """Run RR conversion, ectopic filtering, PRSA and HRV statistics.

    Every metric is None when fewer than ``MIN_RR_INTERVALS`` intervals
    survive filtering.
    """
    rr = valid_rr(samples, ectopic_threshold)
    if len(rr) < MIN_RR_INTERVALS:
        return HRVMetrics(None, None, None, None, None, n_valid=len(rr))

    prsa = compute_dc_ac(rr)
    return HRVMetrics(
        dc=prsa.dc,
        ac=prsa.ac,
        sdnn=sdnn(rr),
        rmssd=compute_rmssd(rr),
        mean_hr=mean_hr(rr),
        n_valid=len(rr),
    )
