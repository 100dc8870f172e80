"""Stress-detection pipeline: wire a sample source into the analytics stages.

Stages, in order:

1. Activity classification -- physical activity disables HRV scoring.
2. Sleep adjustment -- last night's sleep sets the stress threshold.
3. Stress scoring -- PRSA / HRV metrics against the personal baseline.

Each :meth:`StressPipeline.run` suspends exactly once, to acquire
samples, then executes every numeric stage synchronously.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable

from stressdetect.analytics.activity import ActivityType, HeuristicActivityClassifier
from stressdetect.analytics.baseline import BaselineCalibrator
from stressdetect.analytics.features import hr_stats
from stressdetect.analytics.rr import HeartRateSample
from stressdetect.analytics.sleep import SleepQuality, adjust_threshold
from stressdetect.analytics.stress import DEGRADED_SCORE, StressLevel, compute_stress
from stressdetect.config import (
    CALIBRATION_WINDOW_SEC,
    MIN_HR_SAMPLES,
    SLEEP_BASELINE_HOURS,
    WINDOW_SEC,
)
from stressdetect.log import get_logger
from stressdetect.sources import SampleSource, SampleSourceError

logger = get_logger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class PipelineResult:
    """Immutable snapshot of one pipeline run."""

    timestamp: datetime

    # Stage 1: activity
    activity_type: ActivityType
    activity_confidence: float  # 0-1

    # Stage 2: sleep
    sleep_hours: float | None
    sleep_quality: SleepQuality
    adjusted_threshold: int

    # Stage 3: stress (None unless scoring ran on enough data)
    dc: float | None
    ac: float | None
    sdnn: float | None
    rmssd: float | None
    mean_hr: float | None
    stress_score: int
    stress_level: StressLevel
    is_stressed: bool

    # Reserved; not computed in this version
    recovery_slope: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict (JSON-friendly)."""
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        d["activity_type"] = self.activity_type.value
        d["sleep_quality"] = self.sleep_quality.value
        d["stress_level"] = self.stress_level.value
        return d

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def __repr__(self) -> str:
        return (
            f"PipelineResult({self.activity_type.value}, "
            f"stress={self.stress_score} {self.stress_level.value}, "
            f"threshold={self.adjusted_threshold}, "
            f"stressed={self.is_stressed})"
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StressPipeline:
    """Runs the full three-stage pipeline against a sample source.

    Args:
        source: Where HR / sleep / movement samples come from.
        classifier: Object with ``classify(hr_mean, hr_std, movement_mean,
            movement_std) -> (ActivityType, confidence)``.  Defaults to
            :class:`HeuristicActivityClassifier`.
        calibrator: Personal baseline, owned by the caller so it can be
            shared, persisted or inspected.  A fresh one is created if omitted.
        sleep_baseline_hours: User's average sleep.
        window_sec: HR window length for :meth:`run`.
        calibration_window_sec: HR window length for :meth:`calibrate`.
        fetch_timeout: Seconds to wait for the source, or None for no limit.
        clock: Returns "now" as an aware datetime; override for replay.
    """

    def __init__(
        self,
        source: SampleSource,
        classifier: Any = None,
        calibrator: BaselineCalibrator | None = None,
        sleep_baseline_hours: float = SLEEP_BASELINE_HOURS,
        window_sec: float = WINDOW_SEC,
        calibration_window_sec: float = CALIBRATION_WINDOW_SEC,
        fetch_timeout: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.source = source
        self.classifier = classifier if classifier is not None else HeuristicActivityClassifier()
        self.calibrator = calibrator if calibrator is not None else BaselineCalibrator()
        self.sleep_baseline_hours = sleep_baseline_hours
        self.window_sec = window_sec
        self.calibration_window_sec = calibration_window_sec
        self.fetch_timeout = fetch_timeout
        self.clock = clock or _utcnow

        self.state = PipelineState.IDLE
        self.latest_result: PipelineResult | None = None

    # -- acquisition (the only await) --------------------------------------

    async def _fetch(self, aw: Any) -> Any:
        try:
            if self.fetch_timeout is None:
                return await aw
            return await asyncio.wait_for(aw, self.fetch_timeout)
        except asyncio.TimeoutError as e:
            raise SampleSourceError(
                f"sample source timed out after {self.fetch_timeout}s"
            ) from e

    async def _acquire(
        self, start: datetime, end: datetime
    ) -> tuple[list[HeartRateSample], float | None, list[float]]:
        return await self._fetch(asyncio.gather(
            self.source.fetch_heart_rate_samples(start, end),
            self.source.fetch_sleep_hours(),
            self.source.fetch_movement_samples(start, end),
        ))

    # -- public API ----------------------------------------------------------

    async def run(self) -> PipelineResult:
        """Run the full pipeline once.

        Raises:
            SampleSourceError: acquisition failed or timed out.  No result
                is produced and the pipeline returns to ``IDLE``.  Any other
                failure (e.g. a raising classifier) also resets to ``IDLE``.
        """
        self.state = PipelineState.RUNNING
        try:
            result = await self._run_stages()
        except SampleSourceError as e:
            logger.warning("Sample acquisition failed: %s", e)
            self.state = PipelineState.IDLE
            raise
        except BaseException:
            self.state = PipelineState.IDLE
            raise

        self.latest_result = result
        self.state = PipelineState.COMPLETED
        logger.info("%r", result)
        return result

    async def _run_stages(self) -> PipelineResult:
        now = self.clock()
        start = now - timedelta(seconds=self.window_sec)
        hr_samples, sleep_hours, movement = await self._acquire(start, now)

        # ── Stage 1: activity classification ────────────────────────────
        hr_mean, hr_std = hr_stats([s.bpm for s in hr_samples])
        mv_mean, mv_std = hr_stats(movement)
        activity, confidence = self.classifier.classify(hr_mean, hr_std, mv_mean, mv_std)
        if confidence <= 0:
            activity = ActivityType.UNKNOWN
        logger.debug(
            "Activity %s (%.2f) from %d HR samples, %d movement samples",
            activity.value, confidence, len(hr_samples), len(movement),
        )

        # ── Stage 2: sleep threshold adjustment ─────────────────────────
        threshold, sleep_quality = adjust_threshold(sleep_hours, self.sleep_baseline_hours)

        # ── Stage 3: stress scoring ─────────────────────────────────────
        dc = ac = sdnn = rmssd = mean_hr = None
        is_stressed = False

        if activity == ActivityType.PHYSICAL:
            score, level = 0, StressLevel.PHYSICAL_ACTIVITY
        elif activity == ActivityType.COGNITIVE and len(hr_samples) >= MIN_HR_SAMPLES:
            metrics = compute_stress(
                hr_samples,
                baseline=self.calibrator.snapshot(),
                threshold=threshold,
            )
            dc, ac, sdnn = metrics.dc, metrics.ac, metrics.sdnn
            rmssd, mean_hr = metrics.rmssd, metrics.mean_hr
            score, level, is_stressed = metrics.score, metrics.level, metrics.is_stressed
        elif activity == ActivityType.COGNITIVE:
            logger.info("Only %d HR samples; stress not scored", len(hr_samples))
            # Same flag rule as the scorer's own insufficient-data result
            score, level = DEGRADED_SCORE, StressLevel.INSUFFICIENT_DATA
            is_stressed = DEGRADED_SCORE > threshold
        else:
            logger.info("Activity classification unavailable; stress not scored")
            score, level = 0, StressLevel.INSUFFICIENT_CLASSIFICATION

        return PipelineResult(
            timestamp=now,
            activity_type=activity,
            activity_confidence=confidence,
            sleep_hours=sleep_hours,
            sleep_quality=sleep_quality,
            adjusted_threshold=threshold,
            dc=dc, ac=ac, sdnn=sdnn, rmssd=rmssd, mean_hr=mean_hr,
            stress_score=score,
            stress_level=level,
            is_stressed=is_stressed,
        )

    async def calibrate(self) -> bool:
        """Feed the last still-period window to the baseline calibrator.

        Bypasses activity classification; the caller is responsible for
        only calling this while the user is calm and still.  Returns True
        if a reading was stored.
        """
        now = self.clock()
        start = now - timedelta(seconds=self.calibration_window_sec)
        hr_samples = await self._fetch(self.source.fetch_heart_rate_samples(start, now))
        return self.calibrator.add_reading(hr_samples)
