"""Ordered catalog of tracks with visibility flags and a current track.

Each entry pairs a descriptor with its visibility flag, so the visibility
vector always has one flag per track. All mutations go through ``_commit``,
which persists the whole catalog in one call and restores the previous
in-memory state if that write fails.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator

from tracklog.errors import DuplicateName, InvalidName, PersistFailed, UnknownTrack
from tracklog.settings import Settings, TrackDescriptor
from tracklog.store import TrackFileStore

logger = logging.getLogger(__name__)

DEFAULT_TRACK_NAME = "Standard"
DEFAULT_TRACK_FILENAME = "track_standard.csv"
DEFAULT_TRACK_COLOR = 0xFF0000FF

# Palette offered when creating a track
TRACK_COLORS = {
    "red": 0xFFFF0000,
    "green": 0xFF00FF00,
    "blue": 0xFF0000FF,
    "orange": 0xFFFF8800,
    "purple": 0xFFAA00FF,
}

_WHITESPACE = re.compile(r"\s+")
_FORBIDDEN = ("/", "\\", "\0")


def slug(name: str) -> str:
    """Filename-safe form of a track name: whitespace runs become ``_``."""
    return _WHITESPACE.sub("_", name)


def track_filename(name: str) -> str:
    return f"track_{slug(name)}.csv"


@dataclass(slots=True)
class TrackEntry:
    descriptor: TrackDescriptor
    visible: bool = True


class Catalog:
    """Track descriptors, their visibility and the current track.

    Usage:
        catalog = Catalog(Settings(store), TrackFileStore(root))
        catalog.load()
        catalog.create("Morning run", TRACK_COLORS["red"])
        catalog.set_visibility(0, False)
    """

    def __init__(self, settings: Settings, store: TrackFileStore):
        self._settings = settings
        self._store = store
        self._entries: list[TrackEntry] = []
        self._current: str | None = None

    # -- read access ------------------------------------------------------

    @property
    def entries(self) -> list[TrackEntry]:
        return list(self._entries)

    @property
    def tracks(self) -> list[TrackDescriptor]:
        return [e.descriptor for e in self._entries]

    @property
    def visibility(self) -> list[bool]:
        return [e.visible for e in self._entries]

    @property
    def current_name(self) -> str | None:
        return self._current

    @property
    def current(self) -> TrackDescriptor | None:
        if self._current is None:
            return None
        return self.get(self._current)

    def get(self, name: str) -> TrackDescriptor | None:
        for e in self._entries:
            if e.descriptor.name == name:
                return e.descriptor
        return None

    def index_of(self, name: str) -> int:
        for i, e in enumerate(self._entries):
            if e.descriptor.name == name:
                return i
        raise UnknownTrack(name)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TrackDescriptor]:
        return iter(self.tracks)

    # -- persistence ------------------------------------------------------

    def load(self) -> None:
        """Read the persisted catalog, repairing it where needed."""
        entries: list[TrackEntry] = []
        seen: set[str] = set()
        for t in self._settings.load_tracks():
            if t.name in seen:
                logger.warning("Dropping duplicate track %r from catalog", t.name)
                continue
            seen.add(t.name)
            entries.append(TrackEntry(t))

        visibility = self._settings.load_visibility()
        if visibility is not None and len(visibility) == len(entries):
            for e, v in zip(entries, visibility):
                e.visible = v
        elif visibility is not None:
            logger.warning(
                "Visibility has %d flags for %d tracks; showing all",
                len(visibility), len(entries),
            )

        current = self._settings.load_current_name()
        if current is not None and current not in seen:
            logger.warning("Current track %r not in catalog; clearing", current)
            current = None

        self._entries = entries
        self._current = current

        if not self._entries:
            self._bootstrap()
        logger.info("Loaded %d tracks, current=%s", len(self._entries), self._current)

    def _bootstrap(self) -> None:
        name = DEFAULT_TRACK_NAME
        descriptor = TrackDescriptor(
            name=name, filename=DEFAULT_TRACK_FILENAME, color=DEFAULT_TRACK_COLOR,
        )
        self._store.ensure_exists(descriptor.filename)
        self._entries = [TrackEntry(descriptor)]
        self._current = name
        self._commit([], None)

    def _commit(self, prev_entries: list[TrackEntry], prev_current: str | None) -> None:
        try:
            self._settings.save_catalog(self.tracks, self.visibility, self._current)
        except OSError as e:
            logger.error("Catalog save failed: %s", e)
            self._entries = prev_entries
            self._current = prev_current
            raise PersistFailed(e) from e

    def _snapshot(self) -> tuple[list[TrackEntry], str | None]:
        return [TrackEntry(e.descriptor, e.visible) for e in self._entries], self._current

    # -- mutations --------------------------------------------------------

    def create(self, name: str, color: int = DEFAULT_TRACK_COLOR) -> TrackDescriptor:
        """Add a visible track and make it current."""
        name = name.strip()
        if not name:
            raise InvalidName("name must not be empty")
        if any(c in name for c in _FORBIDDEN):
            raise InvalidName(f"{name!r} contains a path separator")
        if self.get(name) is not None:
            raise DuplicateName(name)
        filename = track_filename(name)
        if any(t.filename == filename for t in self.tracks):
            raise DuplicateName(f"{name} (file {filename} is in use)")

        descriptor = TrackDescriptor(name=name, filename=filename, color=color)
        created = not self._store.exists(filename)
        self._store.ensure_exists(filename)

        prev = self._snapshot()
        self._entries.append(TrackEntry(descriptor))
        self._current = name
        try:
            self._commit(*prev)
        except PersistFailed:
            if created:
                self._store.remove(filename)
            raise
        logger.info("Created track %r (%s)", name, filename)
        return descriptor

    def set_current(self, name: str) -> None:
        if self.get(name) is None:
            raise UnknownTrack(name)
        prev = self._snapshot()
        self._current = name
        self._commit(*prev)

    def set_visibility(self, index: int, visible: bool) -> None:
        if not 0 <= index < len(self._entries):
            raise IndexError(f"track index {index} out of range")
        prev = self._snapshot()
        self._entries[index].visible = visible
        self._commit(*prev)

    def remove(self, name: str) -> TrackDescriptor:
        """Delete a track and its file. The first track becomes current if needed.

        The file is deleted only once the catalog no longer refers to it.
        """
        index = self.index_of(name)
        descriptor = self._entries[index].descriptor

        prev = self._snapshot()
        del self._entries[index]
        if self._current == name:
            self._current = self._entries[0].descriptor.name if self._entries else None
        self._commit(*prev)

        try:
            self._store.remove(descriptor.filename)
        except PersistFailed as e:
            logger.warning("Track %r removed, file %s left behind: %s", name, descriptor.filename, e)
        logger.info("Removed track %r", name)
        return descriptor
