"""Live heart-rate acquisition over the standard BLE Heart Rate Service.

Any chest strap or watch that exposes the Bluetooth SIG Heart Rate
Service (0x180D) streams Heart Rate Measurement (0x2A37) notifications.
:class:`BleHeartRateSource` listens to those for the length of the
requested window and hands the collected samples to the pipeline.
"""

from __future__ import annotations

import asyncio
import struct
import time
from datetime import datetime
from typing import NamedTuple

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from stressdetect.analytics.rr import HeartRateSample
from stressdetect.log import get_logger
from stressdetect.sources import SampleSource, SampleSourceError

logger = get_logger(__name__)

HR_SERVICE_UUID = "0000180d-0000-1000-8000-00805f9b34fb"
HR_MEASUREMENT_UUID = "00002a37-0000-1000-8000-00805f9b34fb"


# ---------------------------------------------------------------------------
# Heart Rate Measurement (0x2A37)
# ---------------------------------------------------------------------------

FLAG_HR_UINT16 = 0x01
FLAG_CONTACT_SUPPORTED = 0x02
FLAG_CONTACT_DETECTED = 0x04


class HeartRateMeasurement(NamedTuple):
    bpm: int
    sensor_contact: bool | None  # None when the strap cannot report contact


def parse_heart_rate(data: bytearray) -> HeartRateMeasurement:
    """Decode the flags byte and HR value of a 0x2A37 notification.

    The HR value is uint8, or little-endian uint16 when flag bit 0 is set.
    Energy-expended and RR-interval fields that may follow are not read.
    Raises IndexError / struct.error on a truncated payload.
    """
    flags = data[0]
    if flags & FLAG_HR_UINT16:
        bpm = struct.unpack_from("<H", data, 1)[0]
    else:
        bpm = data[1]

    contact = None
    if flags & FLAG_CONTACT_SUPPORTED:
        contact = bool(flags & FLAG_CONTACT_DETECTED)
    return HeartRateMeasurement(bpm, contact)


def measurement_to_sample(data: bytearray, timestamp: float | None = None) -> HeartRateSample | None:
    """Turn a 0x2A37 payload into a sample; None if the strap lost contact."""
    m = parse_heart_rate(data)
    if m.sensor_contact is False:
        return None
    return HeartRateSample(
        timestamp=time.time() if timestamp is None else timestamp,
        bpm=float(m.bpm),
    )


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


async def scan_hr_devices(timeout: float = 10.0) -> list[tuple[BLEDevice, AdvertisementData]]:
    """Scan for devices advertising the Heart Rate Service."""
    results: list[tuple[BLEDevice, AdvertisementData]] = []

    def _callback(device: BLEDevice, adv: AdvertisementData) -> None:
        uuids = [u.lower() for u in adv.service_uuids]
        if HR_SERVICE_UUID in uuids:
            if not any(d.address == device.address for d, _ in results):
                results.append((device, adv))
                logger.info(
                    "Found %s [%s] RSSI=%s dBm",
                    adv.local_name or device.name or "?", device.address, adv.rssi,
                )

    scanner = BleakScanner(detection_callback=_callback)
    logger.info("Scanning for heart-rate devices (%.0fs)...", timeout)
    await scanner.start()
    await asyncio.sleep(timeout)
    await scanner.stop()
    return results


async def find_hr_device(timeout: float = 10.0) -> BLEDevice | None:
    """Find the first heart-rate device and return it."""
    results = await scan_hr_devices(timeout)
    if results:
        return results[0][0]
    return None


# ---------------------------------------------------------------------------
# Live source
# ---------------------------------------------------------------------------


class BleHeartRateSource(SampleSource):
    """Collect HR samples live from a BLE strap.

    A live strap cannot replay the past: each fetch records *from now*
    for ``end - start`` seconds.  Sleep hours are not available over BLE
    and are supplied by the caller.

    Args:
        address: BLE address; if None, the first HR device found is used.
        sleep_hours: Last night's sleep, reported by :meth:`fetch_sleep_hours`.
        scan_timeout: Seconds to scan when *address* is None.
    """

    def __init__(
        self,
        address: str | None = None,
        sleep_hours: float | None = None,
        scan_timeout: float = 10.0,
    ) -> None:
        self.address = address
        self.sleep_hours = sleep_hours
        self.scan_timeout = scan_timeout

    async def _resolve_address(self) -> str:
        if self.address is not None:
            return self.address
        device = await find_hr_device(self.scan_timeout)
        if device is None:
            raise SampleSourceError("No heart-rate device found.")
        self.address = device.address
        return self.address

    async def fetch_heart_rate_samples(
        self, start: datetime, end: datetime
    ) -> list[HeartRateSample]:
        duration = max((end - start).total_seconds(), 0.0)
        address = await self._resolve_address()
        samples: list[HeartRateSample] = []

        def _on_notification(_char: BleakGATTCharacteristic, data: bytearray) -> None:
            try:
                sample = measurement_to_sample(data)
            except (IndexError, struct.error):
                logger.debug("Malformed HR measurement: %s", data.hex())
                return
            if sample is not None:
                samples.append(sample)

        try:
            async with BleakClient(address) as client:
                logger.info("Connected to %s; recording %.0fs of HR", address, duration)
                await client.start_notify(HR_MEASUREMENT_UUID, _on_notification)
                try:
                    await asyncio.sleep(duration)
                finally:
                    try:
                        await client.stop_notify(HR_MEASUREMENT_UUID)
                    except BleakError:
                        pass  # already disconnected
        except (BleakError, OSError) as e:
            raise SampleSourceError(f"BLE acquisition from {address} failed: {e}") from e

        logger.info("Collected %d HR samples from %s", len(samples), address)
        return samples

    async def fetch_sleep_hours(self) -> float | None:
        return self.sleep_hours
