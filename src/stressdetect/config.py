"""Centralised tunables for the stress-detection pipeline.

Pipeline-level defaults live here so the orchestrator, the CLI and the
tests agree on a single source of truth.  Scoring bands and weights stay
next to the code that applies them (see ``analytics.stress``).
"""

# ─── Acquisition windows ─────────────────────────────────────────────────────
WINDOW_SEC: float = 300.0              # run(): last 5 minutes of HR samples
CALIBRATION_WINDOW_SEC: float = 60.0   # calibrate(): last 60 s of stillness

# ─── RR filtering ────────────────────────────────────────────────────────────
# Max relative change between consecutive RR intervals before both are
# treated as ectopic / noise (Bauer 2006).
ECTOPIC_THRESHOLD: float = 0.20
MIN_RR_INTERVALS: int = 5              # below this, PRSA/HRV metrics are None
MIN_HR_SAMPLES: int = 5                # below this, the cognitive branch skips scoring

# ─── Personal baseline ───────────────────────────────────────────────────────
BASELINE_CAPACITY: int = 50
BASELINE_MIN_READINGS: int = 5

# ─── Thresholds ──────────────────────────────────────────────────────────────
BASE_THRESHOLD: int = 60               # stress threshold before sleep adjustment
SLEEP_BASELINE_HOURS: float = 7.0      # personal average sleep

# ─── Activity heuristics ─────────────────────────────────────────────────────
DEFAULT_MAX_HR: float = 190.0          # ~220 - age 30
