"""Typed facade over a string-keyed persistent config store.

Four keys make up the persisted state::

    tracks_json           JSON array of {name, filename, color}
    tracks_visible_json   JSON array of booleans ("" means re-initialise)
    tracks_current_name   name of the current track, optional
    continuous_mode       "true" / "false"

Writes are last-writer-wins. Corrupt values are logged and read as their
default so a damaged config never prevents start-up.
"""

from __future__ import annotations

import json
import logging
from typing import Mapping, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator

logger = logging.getLogger(__name__)

KEY_TRACKS = "tracks_json"
KEY_VISIBLE = "tracks_visible_json"
KEY_CURRENT = "tracks_current_name"
KEY_CONTINUOUS = "continuous_mode"


class TrackDescriptor(BaseModel):
    """A named, colored track and the file that holds its points."""
    model_config = ConfigDict(frozen=True)

    name: str
    filename: str
    color: int  # ARGB

    @field_validator("color")
    @classmethod
    def _unsigned_argb(cls, v: int) -> int:
        # older catalogs stored the color as a signed 32-bit int
        return v & 0xFFFFFFFF


_tracks_adapter = TypeAdapter(list[TrackDescriptor])
_visible_adapter = TypeAdapter(list[bool])


@runtime_checkable
class ConfigStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str | None) -> None: ...


class MemoryConfigStore:
    """Dict-backed config store. Not persistent across processes."""

    def __init__(self, values: Mapping[str, str] | None = None):
        self.values: dict[str, str] = dict(values or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def put(self, key: str, value: str | None) -> None:
        if value is None:
            self.values.pop(key, None)
        else:
            self.values[key] = value

    def put_many(self, values: Mapping[str, str | None]) -> None:
        for key, value in values.items():
            self.put(key, value)


class Settings:
    """Typed access to the track store's persisted keys."""

    def __init__(self, store: ConfigStore):
        self._store = store

    @property
    def store(self) -> ConfigStore:
        return self._store

    def load_tracks(self) -> list[TrackDescriptor]:
        raw = self._store.get(KEY_TRACKS) or "[]"
        try:
            return _tracks_adapter.validate_json(raw)
        except ValidationError as e:
            logger.error("Ignoring corrupt %s: %s", KEY_TRACKS, e)
            return []

    def load_visibility(self) -> list[bool] | None:
        """Stored visibility flags, or None if they must be re-initialised."""
        raw = self._store.get(KEY_VISIBLE) or ""
        if not raw:
            return None
        try:
            return _visible_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning("Ignoring corrupt %s: %s", KEY_VISIBLE, e)
            return None

    def load_current_name(self) -> str | None:
        return self._store.get(KEY_CURRENT) or None

    def save_catalog(
        self,
        tracks: list[TrackDescriptor],
        visibility: list[bool],
        current_name: str | None,
    ) -> None:
        """Write all catalog keys, in one call when the store supports it."""
        values = {
            KEY_TRACKS: json.dumps([t.model_dump() for t in tracks]),
            KEY_VISIBLE: json.dumps(visibility),
            KEY_CURRENT: current_name,
        }
        put_many = getattr(self._store, "put_many", None)
        if put_many is not None:
            put_many(values)
        else:
            for key, value in values.items():
                self._store.put(key, value)

    @property
    def continuous_mode(self) -> bool:
        return (self._store.get(KEY_CONTINUOUS) or "false").strip().lower() == "true"

    @continuous_mode.setter
    def continuous_mode(self, value: bool) -> None:
        self._store.put(KEY_CONTINUOUS, "true" if value else "false")
