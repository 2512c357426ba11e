"""Typed CSV line format for track files.

Current schema (v2), always written::

    Timestamp,Type,Latitude,Longitude
    2024-05-01T10:15:30.123000,MANUAL,52.52,13.405

Legacy schema (v1), still readable::

    Timestamp,Latitude,Longitude
    2024-01-01T00:00:00,10.0,20.0

The reader branches on field count per line, so a v1 file that later had v2
rows appended reads back in full. The first non-empty line is treated as the
header only if it fails to parse as data, which keeps header-less files
readable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Iterator

from shared.geo import GeoPoint, is_valid_coordinate
from tracklog.errors import DecodeError, DecodeSkipped

logger = logging.getLogger(__name__)

HEADER = "Timestamp,Type,Latitude,Longitude\n"
LEGACY_HEADER = "Timestamp,Latitude,Longitude\n"


class PointKind(Enum):
    MANUAL = "MANUAL"
    CONTINUOUS = "CONTINUOUS"
    HIGHLIGHT = "HIGHLIGHT"


@dataclass(frozen=True, slots=True)
class OtherKind:
    """A kind token this version does not know. Kept verbatim."""
    token: str


Kind = PointKind | OtherKind


def parse_kind(token: str) -> Kind:
    try:
        return PointKind(token)
    except ValueError:
        return OtherKind(token)


def kind_token(kind: Kind) -> str:
    if isinstance(kind, OtherKind):
        return kind.token
    return kind.value


@dataclass(frozen=True, slots=True)
class PointRecord:
    """One row of a track file."""
    timestamp: datetime
    kind: Kind
    lat: float
    lon: float

    @property
    def position(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lon=self.lon)

    @property
    def is_highlight(self) -> bool:
        return self.kind is PointKind.HIGHLIGHT

    @property
    def is_continuous(self) -> bool:
        return self.kind is PointKind.CONTINUOUS


def encode(record: PointRecord) -> str:
    """Encode a record as exactly one newline-terminated CSV line."""
    return (
        f"{record.timestamp.isoformat()},{kind_token(record.kind)},"
        f"{record.lat!r},{record.lon!r}\n"
    )


def _parse_float(text: str, name: str) -> float:
    try:
        return float(text)
    except ValueError:
        raise DecodeError(f"{name} is not a number: {text!r}") from None


def _parse_timestamp(text: str) -> datetime:
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise DecodeError(f"bad timestamp: {text!r}") from None


def decode_line(line: str) -> PointRecord:
    """Decode one CSV line (without or with its newline).

    Raises:
        DecodeError: if the line is not a valid v1 or v2 record.
    """
    parts = [p.strip() for p in line.rstrip("\r\n").split(",")]
    if len(parts) >= 4:
        ts, kind, lat_s, lon_s = parts[0], parse_kind(parts[1]), parts[2], parts[3]
    elif len(parts) == 3:
        ts, kind, lat_s, lon_s = parts[0], PointKind.MANUAL, parts[1], parts[2]
    else:
        raise DecodeError(f"expected 3 or 4 fields, got {len(parts)}")

    lat = _parse_float(lat_s, "latitude")
    lon = _parse_float(lon_s, "longitude")
    if not is_valid_coordinate(lat, lon):
        raise DecodeError(f"coordinate out of range: {lat}, {lon}")

    return PointRecord(timestamp=_parse_timestamp(ts), kind=kind, lat=lat, lon=lon)


def decode(lines: Iterable[str]) -> Iterator[PointRecord | DecodeSkipped]:
    """Lazily decode track file lines.

    ``lines`` should keep their line terminators (as produced by iterating a
    text file). A final line without one is still a record if it parses;
    otherwise it is reported as a truncated write.
    """
    seen_first = False
    for line_no, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            record = decode_line(line)
        except DecodeError as e:
            if not seen_first:
                # header
                seen_first = True
                continue
            reason = str(e) if line.endswith("\n") else "truncated line"
            yield DecodeSkipped(line_no, reason)
            continue
        seen_first = True
        yield record


def records(items: Iterable[PointRecord | DecodeSkipped]) -> Iterator[PointRecord]:
    """Drop skipped lines from a decode stream, logging each one."""
    for item in items:
        if isinstance(item, DecodeSkipped):
            logger.debug("Skipped line %d: %s", item.line_no, item.reason)
            continue
        yield item
