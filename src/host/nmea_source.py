"""NMEA 0183 location sources.

Parses $GPGGA / $GPRMC (any talker ID) from a serial GPS receiver or from a
recorded NMEA log and delivers fixes as :class:`Sample` objects to the
recording engine. Delivery is throttled to the engine's requested
``fastest_ms`` using sample timestamps, so a replayed log behaves like the
live receiver did.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import serial

from tracklog.engine import LocationRequest, MANUAL_REQUEST, Sample, SampleCallback
from tracklog.errors import TrackStoreError

logger = logging.getLogger(__name__)

UERE_M = 5.0  # meters of position error per unit of HDOP


def nmea_checksum(sentence: str) -> str:
    """Compute NMEA XOR checksum for content between $ and *."""
    cs = 0
    for ch in sentence:
        cs ^= ord(ch)
    return f"{cs:02X}"


def _parse_coord(value: str, hemisphere: str, deg_digits: int) -> float:
    """Parse NMEA ddmm.mmmm / dddmm.mmmm into signed decimal degrees."""
    degrees = float(value[:deg_digits])
    minutes = float(value[deg_digits:])
    result = degrees + minutes / 60.0
    return -result if hemisphere in ("S", "W") else result


def _utc_to_local(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone().replace(tzinfo=None)


def _parse_time(hhmmss: str) -> tuple[int, int, int, int]:
    hour, minute = int(hhmmss[0:2]), int(hhmmss[2:4])
    sec = float(hhmmss[4:])
    return hour, minute, int(sec), int(round((sec % 1) * 1e6)) % 1_000_000


def parse_sentence(line: str, now: datetime | None = None) -> Sample | None:
    """Parse one NMEA sentence into a sample.

    Returns None for sentences without a valid fix, unsupported types, or bad
    checksums. GGA carries no date, so the UTC date of ``now`` is used.
    """
    line = line.strip()
    if not line.startswith("$"):
        return None
    body, _, checksum = line[1:].partition("*")
    if checksum and nmea_checksum(body) != checksum[:2].upper():
        logger.debug("Checksum mismatch: %s", line)
        return None

    fields = body.split(",")
    kind = fields[0][2:]
    try:
        if kind == "GGA" and len(fields) >= 9:
            if not fields[6] or int(fields[6]) == 0 or not fields[2] or not fields[4]:
                return None
            lat = _parse_coord(fields[2], fields[3], 2)
            lon = _parse_coord(fields[4], fields[5], 3)
            hdop = float(fields[8]) if fields[8] else None
            utc_now = (now or datetime.now()).astimezone(timezone.utc)
            h, m, s, us = _parse_time(fields[1])
            ts = datetime(utc_now.year, utc_now.month, utc_now.day, h, m, s, us)
            return Sample(
                lat=lat, lon=lon, timestamp=_utc_to_local(ts),
                accuracy=hdop * UERE_M if hdop is not None else None,
            )
        if kind == "RMC" and len(fields) >= 10:
            if fields[2] != "A" or not fields[3] or not fields[5]:
                return None
            lat = _parse_coord(fields[3], fields[4], 2)
            lon = _parse_coord(fields[5], fields[6], 3)
            h, m, s, us = _parse_time(fields[1])
            d = fields[9]
            yy = int(d[4:6])
            year = 1900 + yy if yy >= 80 else 2000 + yy
            ts = datetime(year, int(d[2:4]), int(d[0:2]), h, m, s, us)
            return Sample(lat=lat, lon=lon, timestamp=_utc_to_local(ts))
    except (ValueError, IndexError) as e:
        logger.debug("Unparseable sentence %r: %s", line, e)
    return None


class NmeaLocationSource:
    """Common subscribe/throttle/dispatch logic for NMEA line sources."""

    def __init__(self):
        self._request = MANUAL_REQUEST
        self._callback: SampleCallback | None = None
        self._last_delivered: datetime | None = None
        self._delivered = 0

    @property
    def request(self) -> LocationRequest:
        return self._request

    @property
    def delivered(self) -> int:
        return self._delivered

    def configure(self, request: LocationRequest) -> None:
        self._request = request
        logger.debug("Location source configured: %s", request)

    def subscribe(self, callback: SampleCallback) -> None:
        self._callback = callback

    def unsubscribe(self) -> None:
        self._callback = None

    def feed_line(self, line: str, now: datetime | None = None) -> Sample | None:
        """Parse a line and deliver it if a subscriber is present and not throttled."""
        sample = parse_sentence(line, now)
        if sample is None or self._callback is None:
            return None
        if self._last_delivered is not None:
            gap = sample.timestamp - self._last_delivered
            if timedelta(0) <= gap < timedelta(milliseconds=self._request.fastest_ms):
                return None
        self._last_delivered = sample.timestamp
        self._delivered += 1
        try:
            self._callback(sample)
        except TrackStoreError as e:
            logger.error("Sample not recorded: %s", e)
        return sample


class SerialLocationSource(NmeaLocationSource):
    """Reads NMEA sentences from a GPS receiver on a serial port.

    Usage:
        source = SerialLocationSource("/dev/ttyUSB0", 9600)
        source.open()
        source.subscribe(engine.on_sample)
        while running:
            source.poll()
        source.close()
    """

    def __init__(self, port: str = "/dev/ttyUSB0", baudrate: int = 9600, timeout: float = 1.0):
        super().__init__()
        self._port = port
        self._baudrate = baudrate
        self._timeout = timeout
        self._serial: serial.Serial | None = None

    @property
    def is_open(self) -> bool:
        return self._serial is not None

    def open(self) -> None:
        self._serial = serial.Serial(
            self._port,
            self._baudrate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=self._timeout,
        )
        logger.info("GPS serial open on %s @ %d baud", self._port, self._baudrate)

    def close(self) -> None:
        if self._serial is not None and self._serial.is_open:
            self._serial.close()
        self._serial = None

    def poll(self) -> Sample | None:
        """Read one line (blocking up to the port timeout) and dispatch it."""
        if self._serial is None:
            raise RuntimeError("Serial port not open. Call open() first.")
        raw = self._serial.readline()
        if not raw:
            return None
        return self.feed_line(raw.decode("ascii", errors="replace"))

    def run(self, should_stop: Callable[[], bool]) -> None:
        while not should_stop():
            self.poll()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.close()


class ReplayLocationSource(NmeaLocationSource):
    """Replays a recorded NMEA log file as if it came from a receiver."""

    def __init__(self, path: Path):
        super().__init__()
        self._path = Path(path)
        self._file = None

    def open(self) -> None:
        self._file = open(self._path, encoding="ascii", errors="replace")
        logger.info("Replaying NMEA log %s", self._path)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def poll(self) -> bool:
        """Dispatch the next line. Returns False at end of file."""
        if self._file is None:
            raise RuntimeError("Replay not open. Call open() first.")
        line = self._file.readline()
        if not line:
            return False
        self.feed_line(line)
        return True

    def run(self, should_stop: Callable[[], bool]) -> None:
        while not should_stop() and self.poll():
            pass

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.close()
