"""Heart-rate / sleep / movement sample sources consumed by the pipeline.

A source is anything with the three async fetch methods of
:class:`SampleSource`.  Acquisition is the pipeline's only suspension
point; failures must surface as :class:`SampleSourceError`.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from stressdetect.analytics.rr import HeartRateSample
from stressdetect.log import get_logger

logger = get_logger(__name__)


class SampleSourceError(Exception):
    """Recoverable failure while acquiring samples."""


class SampleSource:
    """Base class for sample sources."""

    async def fetch_heart_rate_samples(
        self, start: datetime, end: datetime
    ) -> list[HeartRateSample]:
        raise NotImplementedError

    async def fetch_sleep_hours(self) -> float | None:
        raise NotImplementedError

    async def fetch_movement_samples(self, start: datetime, end: datetime) -> list[float]:
        """Movement magnitudes (g) in the window; empty if not supported."""
        return []


def _to_epoch(value: float | int | str | datetime) -> float:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, str):
        return _to_epoch(datetime.fromisoformat(value.replace("Z", "+00:00")))
    return float(value)


class MemorySampleSource(SampleSource):
    """Serve samples held in memory, filtered to the requested window.

    Samples are returned in the order they were given, not sorted.
    """

    def __init__(
        self,
        samples: Sequence[HeartRateSample] = (),
        sleep_hours: float | None = None,
        movement: Sequence[tuple[float, float]] = (),
    ) -> None:
        self.samples = list(samples)
        self.sleep_hours = sleep_hours
        self.movement = list(movement)  # (timestamp, magnitude)

    def __repr__(self) -> str:
        return (
            f"MemorySampleSource({len(self.samples)} hr, "
            f"{len(self.movement)} movement, sleep={self.sleep_hours})"
        )

    @property
    def last_timestamp(self) -> float | None:
        stamps = [s.timestamp for s in self.samples] + [t for t, _ in self.movement]
        return max(stamps) if stamps else None

    async def fetch_heart_rate_samples(
        self, start: datetime, end: datetime
    ) -> list[HeartRateSample]:
        t0, t1 = _to_epoch(start), _to_epoch(end)
        return [s for s in self.samples if t0 <= s.timestamp <= t1]

    async def fetch_sleep_hours(self) -> float | None:
        return self.sleep_hours

    async def fetch_movement_samples(self, start: datetime, end: datetime) -> list[float]:
        t0, t1 = _to_epoch(start), _to_epoch(end)
        return [m for t, m in self.movement if t0 <= t <= t1]


def load_jsonl(path: str | Path) -> MemorySampleSource:
    """Load a JSONL sample log into a :class:`MemorySampleSource`.

    Each line is one of::

        {"timestamp": 1707840000, "bpm": 72}
        {"timestamp": "2024-02-13T12:00:00Z", "movement": 0.03}
        {"sleep_hours": 6.5}

    Malformed lines are skipped with a warning.  A missing file raises
    :class:`SampleSourceError`.
    """
    inpath = Path(path)
    if not inpath.exists():
        raise SampleSourceError(f"File not found: {path}")

    samples: list[HeartRateSample] = []
    movement: list[tuple[float, float]] = []
    sleep_hours: float | None = None

    with open(inpath) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
                if "sleep_hours" in entry:
                    sleep_hours = float(entry["sleep_hours"])
                elif "bpm" in entry:
                    samples.append(HeartRateSample(_to_epoch(entry["timestamp"]), float(entry["bpm"])))
                elif "movement" in entry:
                    movement.append((_to_epoch(entry["timestamp"]), float(entry["movement"])))
                else:
                    logger.warning("%s:%d: unrecognised entry, skipping", inpath.name, line_num)
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning("%s:%d: %s, skipping", inpath.name, line_num, e)

    logger.debug(
        "Loaded %d HR samples, %d movement samples from %s",
        len(samples), len(movement), inpath,
    )
    return MemorySampleSource(samples, sleep_hours=sleep_hours, movement=movement)
