"""Shared fixtures and helpers for the stressdetect test suite."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

import pytest

from stressdetect.analytics.rr import HeartRateSample

T_END = 1_707_840_000.0  # fixed "now" for pipeline runs

# Slowly lengthening RR series: DC = 8 ms, SDNN ≈ 14.97 ms, mean HR ≈ 73 bpm.
RAMP_RR = [800.0, 808.0, 816.0, 824.0, 832.0, 840.0]


# ---------------------------------------------------------------------------
# Sample-building helpers
# ---------------------------------------------------------------------------


def rr_to_samples(
    rr_intervals: Sequence[float],
    t_end: float = T_END,
    step: float = 1.0,
) -> list[HeartRateSample]:
    """Build HR samples whose RR conversion reproduces *rr_intervals*.

    Samples are spaced *step* seconds apart and end at *t_end*.
    """
    n = len(rr_intervals)
    return [
        HeartRateSample(timestamp=t_end - (n - 1 - i) * step, bpm=60000.0 / rr)
        for i, rr in enumerate(rr_intervals)
    ]


def bpm_to_samples(
    bpms: Sequence[float],
    t_end: float = T_END,
    step: float = 1.0,
) -> list[HeartRateSample]:
    n = len(bpms)
    return [
        HeartRateSample(timestamp=t_end - (n - 1 - i) * step, bpm=float(b))
        for i, b in enumerate(bpms)
    ]


def fixed_clock(t: float = T_END):
    now = datetime.fromtimestamp(t, tz=timezone.utc)
    return lambda: now


def write_jsonl(path: Path, entries: list[dict]) -> Path:
    """Write a list of dicts as JSONL to the given path."""
    with open(path, "w") as f:
        for entry in entries:
            f.write(json.dumps(entry) + "\n")
    return path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def from_rr():
    return rr_to_samples


@pytest.fixture
def from_bpm():
    return bpm_to_samples


@pytest.fixture
def ramp_samples() -> list[HeartRateSample]:
    return rr_to_samples(RAMP_RR)


@pytest.fixture
def clock():
    return fixed_clock()


@pytest.fixture
def jsonl(tmp_path):
    def _write(entries: list[dict], name: str = "samples.jsonl") -> Path:
        return write_jsonl(tmp_path / name, entries)
    return _write
