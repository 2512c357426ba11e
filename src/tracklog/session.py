"""Wires settings, catalog, engine and projection for one host session."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Protocol

from tracklog.catalog import Catalog
from tracklog.engine import LocationSource, Mode, RecordingEngine
from tracklog.errors import PersistFailed, UnknownTrack
from tracklog.projection import Scene, project
from tracklog.settings import Settings
from tracklog.store import TrackFileStore

logger = logging.getLogger(__name__)

CSV_MIME = "text/csv"


class ShareSink(Protocol):
    """Hands a file to the host's share facility."""

    def share(self, path: Path, mime_type: str, title: str) -> object: ...


class TrackSession:
    """The track store as seen by a host.

    Usage:
        session = TrackSession(Settings(config_store), TrackFileStore(root), source)
        session.open()
        session.engine.manual_trigger()
        scene = session.scene()
        session.close()
    """

    def __init__(
        self,
        settings: Settings,
        store: TrackFileStore,
        source: LocationSource | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings
        self.store = store
        self.catalog = Catalog(settings, store)
        self.engine = RecordingEngine(self.catalog, store, source, clock=clock)

    @property
    def mode(self) -> Mode:
        return self.engine.mode

    def open(self, start_location: bool = True) -> None:
        """Load the catalog and mode, then start location updates."""
        self.catalog.load()
        self.engine.set_mode(Mode(continuous=self.settings.continuous_mode))
        if start_location:
            self.engine.start()

    def close(self) -> None:
        self.engine.stop()

    def set_mode(self, continuous: bool) -> None:
        try:
            self.settings.continuous_mode = continuous
        except OSError as e:
            raise PersistFailed(e) from e
        self.engine.set_mode(Mode(continuous=continuous))

    def scene(self) -> Scene:
        return project(self.catalog, self.engine.mode, self.store.read_all)

    def share(self, name: str, sink: ShareSink) -> object:
        """Export a track's CSV file through a share sink."""
        track = self.catalog.get(name)
        if track is None:
            raise UnknownTrack(name)
        path = self.store.path_for(track.filename)
        if not path.exists():
            raise FileNotFoundError(f"CSV file not found: {path}")
        logger.info("Sharing %s", path)
        return sink.share(path, CSV_MIME, f"Track {track.name}")
