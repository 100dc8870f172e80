"""Heart-rate samples to RR intervals, with ectopic-beat filtering.

Instantaneous heart rate (bpm) is converted to an RR interval
(``60000 / bpm`` ms).  Intervals whose relative change from the previous
interval exceeds the ectopic threshold are treated as noise: both
members of the offending pair are dropped (Bauer 2006).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from stressdetect.config import ECTOPIC_THRESHOLD


@dataclass(frozen=True)
class HeartRateSample:
    """A single heart-rate reading."""

    timestamp: float  # unix seconds
    bpm: float


def hr_to_rr(samples: Sequence[HeartRateSample]) -> list[float]:
    """Convert HR samples to RR intervals (ms), keeping acquisition order.

    Samples with ``bpm <= 0`` are malformed and silently dropped.
    """
    return [60000.0 / s.bpm for s in samples if s.bpm > 0]


def ectopic_mask(
    rr_intervals: Sequence[float],
    threshold: float = ECTOPIC_THRESHOLD,
) -> np.ndarray:
    """Boolean validity mask over *rr_intervals*.

    For every adjacent pair ``(rr[i-1], rr[i])`` whose relative change
    ``|rr[i] - rr[i-1]| / rr[i-1]`` exceeds *threshold*, both indices are
    marked invalid.
    """
    arr = np.asarray(rr_intervals, dtype=np.float64)
    mask = np.ones(len(arr), dtype=bool)
    if len(arr) < 2:
        return mask

    rel_change = np.abs(np.diff(arr)) / arr[:-1]
    bad = rel_change > threshold
    mask[:-1] &= ~bad
    mask[1:] &= ~bad
    return mask


def filter_ectopic(
    rr_intervals: Sequence[float],
    threshold: float = ECTOPIC_THRESHOLD,
) -> list[float]:
    """Return the intervals that survive ectopic filtering, in order."""
    arr = np.asarray(rr_intervals, dtype=np.float64)
    return arr[ectopic_mask(arr, threshold)].tolist()


def valid_rr(
    samples: Sequence[HeartRateSample],
    threshold: float = ECTOPIC_THRESHOLD,
) -> list[float]:
    """HR samples → RR intervals → ectopic filter."""
    return filter_ectopic(hr_to_rr(samples), threshold)
