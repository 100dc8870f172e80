"""Analytics engine for stress detection from heart-rate samples.

Modules:
    rr        -- HR → RR conversion and ectopic-beat filtering
    prsa      -- Deceleration / acceleration capacity (PRSA)
    features  -- HRV statistics (SDNN, RMSSD, mean HR) and window stats
    baseline  -- Rolling personal DC/SDNN baseline
    stress    -- Stress scoring (personalised or population bands)
    sleep     -- Sleep-adjusted stress threshold
    activity  -- Physical vs cognitive activity classification
"""

from stressdetect.analytics.rr import (
    HeartRateSample,
    hr_to_rr,
    ectopic_mask,
    filter_ectopic,
    valid_rr,
)
from stressdetect.analytics.prsa import compute_dc_ac, PRSAResult
from stressdetect.analytics.features import (
    compute_rmssd,
    sdnn,
    mean_hr,
    hr_stats,
    compute_hrv,
    HRVMetrics,
)
from stressdetect.analytics.baseline import (
    BaselineCalibrator,
    Baseline,
    save_baseline,
    load_baseline,
)
from stressdetect.analytics.stress import (
    score_stress,
    compute_stress,
    StressMetrics,
    StressLevel,
)
from stressdetect.analytics.sleep import adjust_threshold, SleepAdjustment, SleepQuality
from stressdetect.analytics.activity import ActivityType, HeuristicActivityClassifier

__all__ = [
    # rr
    "HeartRateSample",
    "hr_to_rr",
    "ectopic_mask",
    "filter_ectopic",
    "valid_rr",
    # prsa
    "compute_dc_ac",
    "PRSAResult",
    # features
    "compute_rmssd",
    "sdnn",
    "mean_hr",
    "hr_stats",
    "compute_hrv",
    "HRVMetrics",
    # baseline
    "BaselineCalibrator",
    "Baseline",
    "save_baseline",
    "load_baseline",
    # stress
    "score_stress",
    "compute_stress",
    "StressMetrics",
    "StressLevel",
    # sleep
    "adjust_threshold",
    "SleepAdjustment",
    "SleepQuality",
    # activity
    "ActivityType",
    "HeuristicActivityClassifier",
]
