"""CLI for the stressdetect HRV stress pipeline."""

import asyncio
import logging
from datetime import datetime, timezone

import click

from stressdetect.config import (
    CALIBRATION_WINDOW_SEC,
    SLEEP_BASELINE_HOURS,
    WINDOW_SEC,
)


def _print_result(result) -> None:
    def fmt(v, unit: str, spec: str = ".1f") -> str:
        return f"{v:{spec}} {unit}" if v is not None else "n/a"

    click.echo(f"\n{'=' * 60}")
    click.echo(f"  Stress check: {result.timestamp.isoformat()}")
    click.echo(f"{'=' * 60}")
    click.echo(f"  Activity:   {result.activity_type.value} "
               f"({result.activity_confidence:.0%})")
    click.echo(f"  Sleep:      {fmt(result.sleep_hours, 'h')} "
               f"({result.sleep_quality.value}) -> threshold {result.adjusted_threshold}")
    click.echo(f"  DC / AC:    {fmt(result.dc, 'ms', '.2f')} / {fmt(result.ac, 'ms', '.2f')}")
    click.echo(f"  SDNN:       {fmt(result.sdnn, 'ms')}")
    click.echo(f"  RMSSD:      {fmt(result.rmssd, 'ms')}")
    click.echo(f"  Mean HR:    {fmt(result.mean_hr, 'bpm', '.0f')}")
    click.echo(f"  Stress:     {result.stress_score}/100 ({result.stress_level.value})"
               f"{'  [STRESSED]' if result.is_stressed else ''}")
    click.echo(f"{'=' * 60}")


def _load_calibrator(path: str | None):
    from stressdetect.analytics.baseline import BaselineCalibrator, load_baseline

    if not path:
        return BaselineCalibrator()
    try:
        return load_baseline(path)
    except (ValueError, TypeError, OSError) as e:
        raise click.ClickException(f"Cannot read baseline {path}: {e}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """stressdetect: HRV/PRSA stress detection from heart-rate samples."""
    from stressdetect.log import set_level

    set_level(logging.DEBUG if verbose else logging.WARNING)


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--sleep-hours", type=float, default=None,
              help="Last night's sleep; overrides any value in FILE.")
@click.option("--sleep-baseline", default=SLEEP_BASELINE_HOURS, help="Average sleep in hours.")
@click.option("--baseline", "baseline_path", default=None, type=click.Path(),
              help="Personal baseline JSON file.")
@click.option("--window", default=WINDOW_SEC, help="HR window in seconds.")
@click.option("--output", "-o", default=None, help="Write result JSON to file.")
def run(
    file: str,
    sleep_hours: float | None,
    sleep_baseline: float,
    baseline_path: str | None,
    window: float,
    output: str | None,
) -> None:
    """Run the pipeline on a JSONL sample log (clock pinned to its last sample)."""
    from stressdetect.analytics.pipeline import StressPipeline
    from stressdetect.sources import SampleSourceError, load_jsonl

    try:
        source = load_jsonl(file)
    except SampleSourceError as e:
        raise click.ClickException(str(e))
    if sleep_hours is not None:
        source.sleep_hours = sleep_hours
    if source.last_timestamp is None:
        raise click.ClickException(f"No samples in {file}")

    end = datetime.fromtimestamp(source.last_timestamp, tz=timezone.utc)
    pipeline = StressPipeline(
        source,
        calibrator=_load_calibrator(baseline_path),
        sleep_baseline_hours=sleep_baseline,
        window_sec=window,
        clock=lambda: end,
    )
    result = asyncio.run(pipeline.run())
    _print_result(result)

    if output:
        with open(output, "w") as f:
            f.write(result.to_json())
        click.echo(f"\nResult written to {output}")


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--baseline", "baseline_path", required=True, type=click.Path(),
              help="Personal baseline JSON file (created if missing).")
@click.option("--window", default=CALIBRATION_WINDOW_SEC, help="Calibration window in seconds.")
def calibrate(file: str, baseline_path: str, window: float) -> None:
    """Add the last still-period window of FILE to the personal baseline."""
    from stressdetect.analytics.baseline import save_baseline
    from stressdetect.analytics.pipeline import StressPipeline
    from stressdetect.sources import SampleSourceError, load_jsonl

    try:
        source = load_jsonl(file)
    except SampleSourceError as e:
        raise click.ClickException(str(e))
    if source.last_timestamp is None:
        raise click.ClickException(f"No samples in {file}")

    end = datetime.fromtimestamp(source.last_timestamp, tz=timezone.utc)
    calibrator = _load_calibrator(baseline_path)
    pipeline = StressPipeline(
        source,
        calibrator=calibrator,
        calibration_window_sec=window,
        clock=lambda: end,
    )
    if asyncio.run(pipeline.calibrate()):
        save_baseline(calibrator, baseline_path)
        click.echo(f"Reading added ({len(calibrator)} stored) → {baseline_path}")
    else:
        click.echo("Window too short or too noisy; no reading added.")
    click.echo(repr(calibrator))


@main.command("baseline")
@click.argument("path", type=click.Path(exists=True))
def baseline_cmd(path: str) -> None:
    """Show a stored personal baseline."""
    calibrator = _load_calibrator(path)
    click.echo(repr(calibrator))
    for i, (dc, sdnn) in enumerate(calibrator.readings(), 1):
        click.echo(f"  {i:>3}  dc={dc:6.2f} ms  sdnn={sdnn:6.1f} ms")


@main.command("sleep")
@click.argument("hours", type=float)
@click.option("--baseline-hours", default=SLEEP_BASELINE_HOURS, help="Average sleep in hours.")
def sleep_cmd(hours: float, baseline_hours: float) -> None:
    """Show the stress threshold for a night of HOURS sleep."""
    from stressdetect.analytics.sleep import adjust_threshold

    adj = adjust_threshold(hours, baseline_hours)
    click.echo(f"threshold={adj.threshold} quality={adj.quality.value}")


@main.command()
@click.option("--timeout", "-t", default=10.0, help="Scan timeout in seconds.")
def scan(timeout: float) -> None:
    """Scan for nearby BLE heart-rate devices."""
    from stressdetect.ble import scan_hr_devices

    results = asyncio.run(scan_hr_devices(timeout))
    if not results:
        click.echo("No heart-rate devices found.")
        return
    for device, adv in results:
        click.echo(f"  {adv.local_name or device.name or '?'} [{device.address}] "
                   f"RSSI={adv.rssi} dBm")


@main.command()
@click.option("--address", "-a", default=None, help="BLE address to connect to.")
@click.option("--window", default=WINDOW_SEC, help="Seconds of HR to record.")
@click.option("--sleep-hours", type=float, default=None, help="Last night's sleep.")
@click.option("--sleep-baseline", default=SLEEP_BASELINE_HOURS, help="Average sleep in hours.")
@click.option("--baseline", "baseline_path", default=None, type=click.Path(),
              help="Personal baseline JSON file.")
def live(
    address: str | None,
    window: float,
    sleep_hours: float | None,
    sleep_baseline: float,
    baseline_path: str | None,
) -> None:
    """Record a live window from a BLE strap and score it."""
    from stressdetect.analytics.pipeline import StressPipeline
    from stressdetect.ble import BleHeartRateSource
    from stressdetect.sources import SampleSourceError

    pipeline = StressPipeline(
        BleHeartRateSource(address, sleep_hours=sleep_hours),
        calibrator=_load_calibrator(baseline_path),
        sleep_baseline_hours=sleep_baseline,
        window_sec=window,
    )
    try:
        result = asyncio.run(pipeline.run())
    except SampleSourceError as e:
        raise click.ClickException(str(e))
    except KeyboardInterrupt:
        click.echo("\nStopped.")
        return
    _print_result(result)


if __name__ == "__main__":
    main()
