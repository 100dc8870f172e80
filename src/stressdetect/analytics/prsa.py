"""Phase-rectified signal averaging (PRSA): deceleration / acceleration capacity.

Every interior beat is an anchor.  If the interval lengthens relative to
its predecessor (heart slowing, vagal) the anchor is a deceleration
anchor; if it shortens (heart speeding, sympathetic) it is an
acceleration anchor.  At each anchor::

    prsa = (RR[i] + RR[i+1] - RR[i-1] - RR[i-2]) / 4

DC is the mean over deceleration anchors, AC the mean over acceleration
anchors.  Higher DC means stronger parasympathetic modulation; a more
negative AC means stronger sympathetic modulation.

Reference: Bauer et al., Lancet 2006; Velmovitsky et al. 2022 (Apple Watch).
"""

from __future__ import annotations

from typing import NamedTuple, Sequence

import numpy as np

from stressdetect.config import MIN_RR_INTERVALS


class PRSAResult(NamedTuple):
    """Deceleration and acceleration capacity (ms); None when undefined."""

    dc: float | None
    ac: float | None


def compute_dc_ac(
    rr_intervals: Sequence[float],
    min_intervals: int = MIN_RR_INTERVALS,
) -> PRSAResult:
    """Compute DC and AC from an already-filtered RR series.

    Args:
        rr_intervals: Ectopic-filtered RR intervals (ms), in order.
        min_intervals: Minimum series length; shorter series yield
            ``(None, None)``.

    Returns:
        PRSAResult.  Either field is None if its anchor set is empty
        (e.g. a perfectly constant series has no anchors at all).
    """
    if len(rr_intervals) < min_intervals:
        return PRSAResult(None, None)

    rr = np.asarray(rr_intervals, dtype=np.float64)
    i = np.arange(2, len(rr) - 1)

    prsa = (rr[i] + rr[i + 1] - rr[i - 1] - rr[i - 2]) / 4.0
    decel = rr[i] > rr[i - 1]
    accel = rr[i] < rr[i - 1]

    dc = float(np.mean(prsa[decel])) if np.any(decel) else None
    ac = float(np.mean(prsa[accel])) if np.any(accel) else None
    return PRSAResult(dc, ac)
