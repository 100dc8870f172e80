"""Rolling personal baseline of DC / SDNN taken during calm periods.

Readings are kept in a fixed-capacity ring buffer (oldest evicted first).
The baseline is only usable once ``min_readings`` entries exist; until
then the scorer falls back to population bands.

Which windows count as "calm" is the caller's policy: the calibrator
accepts whatever it is fed.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import NamedTuple, Sequence

import numpy as np

from stressdetect.analytics.features import compute_hrv
from stressdetect.analytics.rr import HeartRateSample
from stressdetect.config import BASELINE_CAPACITY, BASELINE_MIN_READINGS
from stressdetect.log import get_logger

logger = get_logger(__name__)

BASELINE_FILE_VERSION = 1


class Baseline(NamedTuple):
    """Mean DC and SDNN over the stored calm-period readings."""

    dc: float
    sdnn: float


class BaselineCalibrator:
    """Bounded FIFO of ``(dc, sdnn)`` readings.

    All access goes through one lock so ``run()`` and ``calibrate()`` may
    share an instance across tasks or threads.
    """

    def __init__(
        self,
        capacity: int = BASELINE_CAPACITY,
        min_readings: int = BASELINE_MIN_READINGS,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.min_readings = min_readings
        self._buf = np.zeros((capacity, 2), dtype=np.float64)
        self._cursor = 0  # next write slot
        self._count = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return self._count

    def __repr__(self) -> str:
        snap = self.snapshot()
        if snap is None:
            return f"BaselineCalibrator({len(self)}/{self.capacity}, no baseline)"
        return (
            f"BaselineCalibrator({len(self)}/{self.capacity}, "
            f"dc={snap.dc:.2f}ms, sdnn={snap.sdnn:.1f}ms)"
        )

    # -- mutation -----------------------------------------------------------

    def add_reading(self, samples: Sequence[HeartRateSample]) -> bool:
        """Compute DC/SDNN for a calm window and append them.

        Returns True if a reading was stored, False if the window did not
        yield both DC and SDNN.
        """
        metrics = compute_hrv(samples)
        if metrics.dc is None or metrics.sdnn is None:
            logger.info(
                "Calibration window rejected (%d valid RR intervals, dc=%s)",
                metrics.n_valid, metrics.dc,
            )
            return False
        self.add_values(metrics.dc, metrics.sdnn)
        logger.info("Baseline reading added: dc=%.2f sdnn=%.2f", metrics.dc, metrics.sdnn)
        return True

    def add_values(self, dc: float, sdnn: float) -> None:
        """Append a precomputed ``(dc, sdnn)`` pair."""
        with self._lock:
            self._buf[self._cursor] = (dc, sdnn)
            self._cursor = (self._cursor + 1) % self.capacity
            self._count = min(self._count + 1, self.capacity)

    def clear(self) -> None:
        with self._lock:
            self._cursor = 0
            self._count = 0

    # -- queries ------------------------------------------------------------

    def _ordered(self) -> np.ndarray:
        # Caller holds the lock.
        if self._count < self.capacity:
            return self._buf[: self._count]
        return np.roll(self._buf, -self._cursor, axis=0)

    def readings(self) -> list[tuple[float, float]]:
        """Stored pairs, oldest first."""
        with self._lock:
            return [(float(dc), float(s)) for dc, s in self._ordered()]

    def has_baseline(self) -> bool:
        with self._lock:
            return self._count >= self.min_readings

    def baseline_dc(self) -> float | None:
        snap = self.snapshot()
        return snap.dc if snap is not None else None

    def baseline_sdnn(self) -> float | None:
        snap = self.snapshot()
        return snap.sdnn if snap is not None else None

    def snapshot(self) -> Baseline | None:
        """Both means read under a single lock acquisition."""
        with self._lock:
            if self._count < self.min_readings:
                return None
            means = self._ordered().mean(axis=0)
            return Baseline(dc=float(means[0]), sdnn=float(means[1]))


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def save_baseline(calibrator: BaselineCalibrator, path: str | Path) -> Path:
    """Write the calibrator's readings to a JSON file."""
    outpath = Path(path)
    outpath.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "version": BASELINE_FILE_VERSION,
        "capacity": calibrator.capacity,
        "readings": [list(r) for r in calibrator.readings()],
    }
    with open(outpath, "w") as f:
        json.dump(payload, f, indent=2)
    return outpath


def load_baseline(
    path: str | Path,
    capacity: int | None = None,
    min_readings: int = BASELINE_MIN_READINGS,
) -> BaselineCalibrator:
    """Rebuild a calibrator from :func:`save_baseline` output.

    A missing file yields an empty calibrator.  If the file holds more
    readings than *capacity*, only the newest are kept.
    """
    inpath = Path(path)
    if not inpath.exists():
        return BaselineCalibrator(capacity or BASELINE_CAPACITY, min_readings)

    with open(inpath) as f:
        payload = json.load(f)

    if not isinstance(payload, dict):
        raise ValueError("baseline file must hold a JSON object")
    version = payload.get("version")
    if version != BASELINE_FILE_VERSION:
        raise ValueError(f"unsupported baseline file version: {version!r}")

    cal = BaselineCalibrator(
        capacity or int(payload.get("capacity", BASELINE_CAPACITY)),
        min_readings,
    )
    for dc, s in payload.get("readings", []):
        cal.add_values(float(dc), float(s))
    logger.debug("Loaded %d baseline readings from %s", len(cal), inpath)
    return cal
