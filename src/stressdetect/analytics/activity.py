"""Activity classification: is this window physical or cognitive load?

HRV-based stress inference is only valid when the body is still, so the
pipeline first asks a classifier whether the window was physical
activity.  Any object with a matching ``classify`` method can be plugged
in (e.g. a wrapper around a trained model); :class:`HeuristicActivityClassifier`
is the default, combining movement variability and HR zone.
"""

from __future__ import annotations

from enum import Enum

from stressdetect.config import DEFAULT_MAX_HR


class ActivityType(str, Enum):
    """Coarse activity classification."""

    PHYSICAL = "PHYSICAL"
    COGNITIVE = "COGNITIVE"
    UNKNOWN = "UNKNOWN"


# ---------------------------------------------------------------------------
# Thresholds (movement std in g, fraction of max HR)
# ---------------------------------------------------------------------------

MOVEMENT_PHYSICAL = 0.20  # accel magnitude std at/above this → moving
HR_PHYSICAL = 0.60  # mean HR at/above this fraction of max → exertion

# Confidence by how many signals were available and whether they agreed
CONFIDENCE_BOTH_AGREE = 0.9
CONFIDENCE_SINGLE = 0.7
CONFIDENCE_CONFLICT = 0.6


class HeuristicActivityClassifier:
    """Rule-based stand-in for a trained activity model."""

    def __init__(self, max_hr: float = DEFAULT_MAX_HR) -> None:
        self.max_hr = max_hr

    def _movement_vote(self, movement_mean: float | None, movement_std: float | None) -> bool | None:
        if movement_std is not None:
            return movement_std >= MOVEMENT_PHYSICAL
        if movement_mean is not None:
            # A single reading has no spread; fall back to its magnitude
            return movement_mean >= MOVEMENT_PHYSICAL
        return None

    def _hr_vote(self, hr_mean: float | None) -> bool | None:
        if hr_mean is None or self.max_hr <= 0:
            return None
        return hr_mean / self.max_hr >= HR_PHYSICAL

    def classify(
        self,
        hr_mean: float | None,
        hr_std: float | None,
        movement_mean: float | None,
        movement_std: float | None,
    ) -> tuple[ActivityType, float]:
        """Return ``(activity_type, confidence)``.

        Physical if either signal votes physical; with no usable signal the
        result is ``(UNKNOWN, 0.0)``.  *hr_std* is accepted for interface
        compatibility with model-backed classifiers.
        """
        votes = [
            v for v in (self._movement_vote(movement_mean, movement_std), self._hr_vote(hr_mean))
            if v is not None
        ]
        if not votes:
            return ActivityType.UNKNOWN, 0.0

        physical = any(votes)
        if len(votes) == 1:
            confidence = CONFIDENCE_SINGLE
        elif votes[0] == votes[1]:
            confidence = CONFIDENCE_BOTH_AGREE
        else:
            confidence = CONFIDENCE_CONFLICT

        activity = ActivityType.PHYSICAL if physical else ActivityType.COGNITIVE
        return activity, confidence
