"""Recording engine: turns location samples and user triggers into records.

Mode-dependent behaviour:

    mode         manual_trigger()       location sample
    manual       one MANUAL record      nothing (live text only)
    continuous   one HIGHLIGHT record   one CONTINUOUS record

The engine keeps the last valid sample; ``manual_trigger`` records at that
position. The live text is for display only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Protocol

from shared.geo import is_valid_coordinate
from tracklog.catalog import Catalog
from tracklog.codec import PointKind, PointRecord
from tracklog.errors import NoCurrentTrack, NoFix
from tracklog.store import TrackFileStore

logger = logging.getLogger(__name__)

LOCATION_UNAVAILABLE = "Location unavailable"
PERMISSION_DENIED = "Location permission denied"
WAITING_FOR_FIX = "Waiting for location"


@dataclass(frozen=True, slots=True)
class Sample:
    """A location fix delivered by the location source."""
    lat: float
    lon: float
    timestamp: datetime
    accuracy: float | None = None  # meters


class Priority(Enum):
    HIGH = "high"
    BALANCED = "balanced"
    LOW = "low"


@dataclass(frozen=True, slots=True)
class LocationRequest:
    """Rate the location source should deliver samples at."""
    interval_ms: int
    fastest_ms: int
    priority: Priority = Priority.HIGH


MANUAL_REQUEST = LocationRequest(interval_ms=1000, fastest_ms=500)
CONTINUOUS_REQUEST = LocationRequest(interval_ms=2000, fastest_ms=1000)


@dataclass(frozen=True, slots=True)
class Mode:
    continuous: bool = False

    @property
    def request(self) -> LocationRequest:
        return CONTINUOUS_REQUEST if self.continuous else MANUAL_REQUEST


SampleCallback = Callable[[Sample | None], object]


class LocationSource(Protocol):
    def configure(self, request: LocationRequest) -> None: ...

    def subscribe(self, callback: SampleCallback) -> None: ...

    def unsubscribe(self) -> None: ...


def format_live_text(sample: Sample) -> str:
    return f"Latitude: {sample.lat}\nLongitude: {sample.lon}"


class RecordingEngine:
    """Decides what to persist for each sample and each manual trigger.

    Usage:
        engine = RecordingEngine(catalog, store, source)
        engine.start()
        ...                      # source calls engine.on_sample(...)
        engine.manual_trigger()  # user pressed "save"
        engine.set_mode(Mode(continuous=True))
    """

    def __init__(
        self,
        catalog: Catalog,
        store: TrackFileStore,
        source: LocationSource | None = None,
        mode: Mode = Mode(),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._catalog = catalog
        self._store = store
        self._source = source
        self._mode = mode
        self._clock = clock
        self._latest: Sample | None = None
        self._subscribed = False
        self._live_text = WAITING_FOR_FIX

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def latest_sample(self) -> Sample | None:
        return self._latest

    @property
    def live_text(self) -> str:
        return self._live_text

    @property
    def is_subscribed(self) -> bool:
        return self._subscribed

    # -- source lifecycle -------------------------------------------------

    def start(self) -> None:
        """Configure the source for the current mode and subscribe."""
        if self._source is None or self._subscribed:
            return
        self._source.configure(self._mode.request)
        self._source.subscribe(self.on_sample)
        self._subscribed = True
        logger.info("Location updates started (%s)", self._mode.request)

    def stop(self) -> None:
        if self._source is None or not self._subscribed:
            return
        self._source.unsubscribe()
        self._subscribed = False
        logger.info("Location updates stopped")

    def pause(self) -> None:
        """Host went to background."""
        self.stop()

    def resume(self) -> None:
        self.start()

    def on_permission_revoked(self) -> None:
        self.stop()
        self._live_text = PERMISSION_DENIED

    def set_mode(self, mode: Mode) -> None:
        """Switch mode, reconfiguring the source without unsubscribing."""
        if mode == self._mode:
            return
        self._mode = mode
        if self._source is not None and self._subscribed:
            self._source.configure(mode.request)
        logger.info("Recording mode: %s", "continuous" if mode.continuous else "manual")

    # -- events -----------------------------------------------------------

    def on_sample(self, sample: Sample | None) -> PointRecord | None:
        """Handle one location callback. Returns the record written, if any."""
        if sample is None:
            self._live_text = LOCATION_UNAVAILABLE
            return None
        if not is_valid_coordinate(sample.lat, sample.lon):
            logger.warning("Dropping invalid sample %s, %s", sample.lat, sample.lon)
            return None

        # the fix counts as received even if writing it below fails
        self._latest = sample
        self._live_text = format_live_text(sample)

        if not self._mode.continuous:
            return None
        return self._write(PointKind.CONTINUOUS, sample.lat, sample.lon, sample.timestamp)

    def manual_trigger(self) -> PointRecord:
        """Record the latest position: MANUAL in manual mode, HIGHLIGHT in continuous."""
        if self._catalog.current is None:
            raise NoCurrentTrack()
        if self._latest is None:
            raise NoFix()
        kind = PointKind.HIGHLIGHT if self._mode.continuous else PointKind.MANUAL
        return self._write(kind, self._latest.lat, self._latest.lon, self._clock())

    def _write(self, kind: PointKind, lat: float, lon: float, ts: datetime) -> PointRecord:
        track = self._catalog.current
        if track is None:
            raise NoCurrentTrack()
        record = PointRecord(timestamp=ts, kind=kind, lat=lat, lon=lon)
        self._store.append(track.filename, record)
        logger.debug("%s point %.6f, %.6f -> %s", kind.value, lat, lon, track.filename)
        return record
