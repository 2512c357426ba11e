"""Error kinds raised by the track store.

Every error carries a short user-facing ``message``; none is fatal to the
process. Decode problems are not exceptions at the API boundary: the codec
reports them as :class:`DecodeSkipped` values and keeps reading.
"""

from __future__ import annotations

from dataclasses import dataclass


class TrackStoreError(Exception):
    """Base class for all track store errors."""

    message = "track store error"

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(f"{self.message}: {detail}" if detail else self.message)


class NoCurrentTrack(TrackStoreError):
    message = "no track selected"


class NoFix(TrackStoreError):
    message = "no location fix yet"


class InvalidName(TrackStoreError):
    message = "invalid track name"


class DuplicateName(TrackStoreError):
    message = "track already exists"


class UnknownTrack(TrackStoreError):
    message = "no such track"


class PersistFailed(TrackStoreError):
    """An I/O or config-store write failed. In-memory state is unchanged."""

    message = "save failed"

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(str(cause))


class DecodeError(ValueError):
    """A single CSV line could not be decoded."""


@dataclass(frozen=True, slots=True)
class DecodeSkipped:
    """A line the codec skipped while reading a track file."""
    line_no: int  # 1-based
    reason: str
