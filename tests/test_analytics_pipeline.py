"""Tests for stressdetect.analytics.pipeline -- the orchestrator state machine."""

import asyncio
import json
import math

import pytest

from stressdetect.analytics.activity import ActivityType
from stressdetect.analytics.baseline import BaselineCalibrator
from stressdetect.analytics.pipeline import (
    StressPipeline,
    PipelineResult,
    PipelineState,
)
from stressdetect.analytics.sleep import SleepQuality
from stressdetect.analytics.stress import StressLevel
from stressdetect.sources import MemorySampleSource, SampleSource, SampleSourceError

from conftest import T_END, RAMP_RR, rr_to_samples, fixed_clock


def still(n: int, t_end: float = T_END) -> list[tuple[float, float]]:
    """Low-variance movement readings (g), one per second."""
    return [(t_end - i, 0.01 + 0.002 * (i % 2)) for i in range(n)]


def moving(n: int, t_end: float = T_END) -> list[tuple[float, float]]:
    return [(t_end - i, 0.2 if i % 2 else 1.2) for i in range(n)]


class FixedClassifier:
    def __init__(self, activity: ActivityType, confidence: float) -> None:
        self.result = (activity, confidence)
        self.calls: list[tuple] = []

    def classify(self, hr_mean, hr_std, movement_mean, movement_std):
        self.calls.append((hr_mean, hr_std, movement_mean, movement_std))
        return self.result


class RaisingClassifier:
    def classify(self, hr_mean, hr_std, movement_mean, movement_std):
        raise RuntimeError("model not loaded")


class FailingSource(SampleSource):
    async def fetch_heart_rate_samples(self, start, end):
        raise SampleSourceError("health store unavailable")

    async def fetch_sleep_hours(self):
        return 7.0


class SlowSource(MemorySampleSource):
    async def fetch_heart_rate_samples(self, start, end):
        await asyncio.sleep(10)
        return await super().fetch_heart_rate_samples(start, end)


def make_pipeline(source, **kwargs) -> StressPipeline:
    kwargs.setdefault("clock", fixed_clock())
    return StressPipeline(source, **kwargs)


# ===================================================================
# run()
# ===================================================================


class TestCognitiveBranch:
    def test_population_scoring(self, ramp_samples):
        source = MemorySampleSource(ramp_samples, sleep_hours=7.0, movement=still(6))
        pipeline = make_pipeline(source)
        result = asyncio.run(pipeline.run())

        assert result.activity_type == ActivityType.COGNITIVE
        assert result.activity_confidence > 0
        assert result.sleep_quality == SleepQuality.NORMAL
        assert result.adjusted_threshold == 60
        assert result.dc == pytest.approx(8.0)
        assert result.ac is None
        assert result.sdnn == pytest.approx(math.sqrt(224.0))
        assert result.rmssd == pytest.approx(8.0)
        assert result.stress_score == 70
        assert result.stress_level == StressLevel.VERY_HIGH
        assert result.is_stressed
        assert result.recovery_slope is None

    def test_uses_sleep_adjusted_threshold(self):
        # Short sleep lowers the bar the score is compared against
        source = MemorySampleSource(rr_to_samples(RAMP_RR), sleep_hours=5.0, movement=still(6))
        result = asyncio.run(make_pipeline(source).run())
        assert result.sleep_quality == SleepQuality.VERY_POOR
        assert result.adjusted_threshold == 48
        assert result.is_stressed == (result.stress_score > 48)

    def test_personalized_with_injected_calibrator(self, ramp_samples):
        cal = BaselineCalibrator()
        for _ in range(5):
            cal.add_values(16.0, math.sqrt(224.0))
        source = MemorySampleSource(ramp_samples, sleep_hours=7.0, movement=still(6))
        result = asyncio.run(make_pipeline(source, calibrator=cal).run())
        # DC 8 vs 16 → -50% → +40
        assert result.stress_score == 90
        assert len(cal) == 5

    def test_run_never_mutates_baseline(self, ramp_samples):
        cal = BaselineCalibrator()
        source = MemorySampleSource(ramp_samples, movement=still(6))
        asyncio.run(make_pipeline(source, calibrator=cal).run())
        assert len(cal) == 0

    def test_too_few_samples(self, from_bpm):
        source = MemorySampleSource(from_bpm([70.0, 71.0, 72.0]), sleep_hours=7.0)
        result = asyncio.run(make_pipeline(source).run())
        assert result.activity_type == ActivityType.COGNITIVE
        assert result.stress_level == StressLevel.INSUFFICIENT_DATA
        assert result.stress_score == 50
        assert not result.is_stressed
        assert result.dc is None

    def test_too_few_samples_flag_follows_threshold(self, from_bpm):
        # Degraded score 50 against a very-poor-sleep threshold of 48
        source = MemorySampleSource(from_bpm([70.0, 71.0, 72.0]), sleep_hours=5.0)
        result = asyncio.run(make_pipeline(source).run())
        assert result.stress_level == StressLevel.INSUFFICIENT_DATA
        assert result.adjusted_threshold == 48
        assert result.is_stressed

    def test_window_excludes_old_samples(self):
        old = rr_to_samples(RAMP_RR, t_end=T_END - 3600)
        source = MemorySampleSource(old, movement=still(6))
        result = asyncio.run(make_pipeline(source).run())
        # Nothing in the last 5 minutes: no HR, still movement → cognitive, too few samples
        assert result.stress_level == StressLevel.INSUFFICIENT_DATA


class TestOtherBranches:
    def test_physical_skips_scoring(self, ramp_samples):
        source = MemorySampleSource(ramp_samples, sleep_hours=7.0, movement=moving(6))
        result = asyncio.run(make_pipeline(source).run())
        assert result.activity_type == ActivityType.PHYSICAL
        assert result.stress_level == StressLevel.PHYSICAL_ACTIVITY
        assert result.stress_score == 0
        assert not result.is_stressed
        assert result.dc is None
        assert result.sdnn is None
        # Sleep stage still runs
        assert result.adjusted_threshold == 60

    def test_still_readings_count_toward_movement(self, ramp_samples):
        # 0 g readings are part of the window: alternating 0.0 / 0.5 g is
        # a std of ~0.27 g, well into the physical range
        movement = [(T_END - i, 0.5 if i % 2 else 0.0) for i in range(6)]
        source = MemorySampleSource(ramp_samples, sleep_hours=7.0, movement=movement)
        result = asyncio.run(make_pipeline(source).run())
        assert result.activity_type == ActivityType.PHYSICAL
        assert result.stress_level == StressLevel.PHYSICAL_ACTIVITY
        assert result.stress_score == 0

    def test_zero_movement_passed_to_classifier(self, ramp_samples):
        clf = FixedClassifier(ActivityType.COGNITIVE, 0.9)
        source = MemorySampleSource(ramp_samples, movement=[(T_END, 0.0), (T_END - 1, 0.0)])
        asyncio.run(make_pipeline(source, classifier=clf).run())
        assert clf.calls[0][2:] == (0.0, 0.0)

    def test_unknown_classification(self, ramp_samples):
        clf = FixedClassifier(ActivityType.UNKNOWN, 0.0)
        source = MemorySampleSource(ramp_samples, sleep_hours=5.0)
        result = asyncio.run(make_pipeline(source, classifier=clf).run())
        assert result.activity_type == ActivityType.UNKNOWN
        assert result.stress_level == StressLevel.INSUFFICIENT_CLASSIFICATION
        assert result.stress_score == 0
        assert not result.is_stressed
        assert result.adjusted_threshold == 48

    def test_zero_confidence_coerced_to_unknown(self, ramp_samples):
        clf = FixedClassifier(ActivityType.COGNITIVE, 0.0)
        result = asyncio.run(make_pipeline(MemorySampleSource(ramp_samples), classifier=clf).run())
        assert result.activity_type == ActivityType.UNKNOWN
        assert result.stress_level == StressLevel.INSUFFICIENT_CLASSIFICATION

    def test_no_data_at_all(self):
        result = asyncio.run(make_pipeline(MemorySampleSource()).run())
        assert result.activity_type == ActivityType.UNKNOWN
        assert result.sleep_quality == SleepQuality.UNKNOWN

    def test_classifier_features(self, from_bpm):
        clf = FixedClassifier(ActivityType.COGNITIVE, 0.8)
        source = MemorySampleSource(from_bpm([60.0, 80.0]), movement=[(T_END, 0.5)])
        asyncio.run(make_pipeline(source, classifier=clf).run())
        hr_mean, hr_std, mv_mean, mv_std = clf.calls[0]
        assert hr_mean == pytest.approx(70.0)
        assert hr_std == pytest.approx(math.sqrt(200.0))
        assert mv_mean == pytest.approx(0.5)
        assert mv_std is None


class TestStateAndResult:
    def test_state_transitions(self, ramp_samples):
        pipeline = make_pipeline(MemorySampleSource(ramp_samples))
        assert pipeline.state == PipelineState.IDLE
        assert pipeline.latest_result is None
        result = asyncio.run(pipeline.run())
        assert pipeline.state == PipelineState.COMPLETED
        assert pipeline.latest_result is result

    def test_fresh_result_each_run(self, ramp_samples):
        pipeline = make_pipeline(MemorySampleSource(ramp_samples, movement=still(6)))
        first = asyncio.run(pipeline.run())
        second = asyncio.run(pipeline.run())
        assert first is not second
        assert first == second

    def test_result_is_immutable(self, ramp_samples):
        result = asyncio.run(make_pipeline(MemorySampleSource(ramp_samples)).run())
        with pytest.raises(AttributeError):
            result.stress_score = 5

    def test_to_json(self, ramp_samples):
        source = MemorySampleSource(ramp_samples, sleep_hours=7.0, movement=still(6))
        result = asyncio.run(make_pipeline(source).run())
        d = json.loads(result.to_json())
        assert d["activity_type"] == "COGNITIVE"
        assert d["stress_level"] == "very_high"
        assert d["sleep_quality"] == "normal"
        assert d["recovery_slope"] is None
        assert d["timestamp"].startswith("2024-02-13")
        assert "stressed=True" in repr(result)


class TestFailures:
    def test_source_error_propagates(self):
        cal = BaselineCalibrator()
        pipeline = make_pipeline(FailingSource(), calibrator=cal)
        with pytest.raises(SampleSourceError):
            asyncio.run(pipeline.run())
        assert pipeline.state == PipelineState.IDLE
        assert pipeline.latest_result is None
        assert len(cal) == 0

    def test_classifier_failure_resets_state(self, ramp_samples):
        pipeline = make_pipeline(MemorySampleSource(ramp_samples), classifier=RaisingClassifier())
        with pytest.raises(RuntimeError, match="model not loaded"):
            asyncio.run(pipeline.run())
        assert pipeline.state == PipelineState.IDLE
        assert pipeline.latest_result is None

    def test_timeout_becomes_source_error(self, ramp_samples):
        pipeline = make_pipeline(SlowSource(ramp_samples), fetch_timeout=0.01)
        with pytest.raises(SampleSourceError, match="timed out"):
            asyncio.run(pipeline.run())
        assert pipeline.state == PipelineState.IDLE

    def test_cancellation_leaves_state_untouched(self, ramp_samples):
        cal = BaselineCalibrator()
        pipeline = make_pipeline(SlowSource(ramp_samples), calibrator=cal)

        async def scenario():
            task = asyncio.create_task(pipeline.calibrate())
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            task = asyncio.create_task(pipeline.run())
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert len(cal) == 0
        assert pipeline.state == PipelineState.IDLE
        assert pipeline.latest_result is None


# ===================================================================
# calibrate()
# ===================================================================


class TestCalibrate:
    def test_adds_reading(self, ramp_samples):
        cal = BaselineCalibrator()
        pipeline = make_pipeline(MemorySampleSource(ramp_samples), calibrator=cal)
        assert asyncio.run(pipeline.calibrate())
        assert len(cal) == 1
        assert cal.readings()[0][0] == pytest.approx(8.0)

    def test_skips_classification(self, ramp_samples):
        clf = FixedClassifier(ActivityType.PHYSICAL, 1.0)
        cal = BaselineCalibrator()
        source = MemorySampleSource(ramp_samples, movement=moving(6))
        pipeline = make_pipeline(source, classifier=clf, calibrator=cal)
        assert asyncio.run(pipeline.calibrate())
        assert clf.calls == []

    def test_uses_calibration_window(self):
        # Samples 2 minutes old are outside the default 60 s window
        source = MemorySampleSource(rr_to_samples(RAMP_RR, t_end=T_END - 120))
        cal = BaselineCalibrator()
        assert not asyncio.run(make_pipeline(source, calibrator=cal).calibrate())
        assert len(cal) == 0

    def test_builds_usable_baseline(self, ramp_samples):
        cal = BaselineCalibrator()
        pipeline = make_pipeline(MemorySampleSource(ramp_samples, movement=still(6)), calibrator=cal)

        async def scenario():
            for _ in range(5):
                await pipeline.calibrate()
            return await pipeline.run()

        result = asyncio.run(scenario())
        assert cal.has_baseline()
        # Current window equals the baseline → no change from 50
        assert result.stress_score == 50
        assert result.stress_level == StressLevel.HIGH
