"""Summary statistics for a recorded track."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from shared.geo import path_length_km
from tracklog.codec import PointKind, PointRecord


@dataclass(slots=True)
class TrackStats:
    """Statistics for one track file."""
    total_points: int = 0
    manual: int = 0
    continuous: int = 0
    highlights: int = 0
    other: int = 0
    first: datetime | None = None
    last: datetime | None = None
    length_km: float = 0.0

    @property
    def duration_s(self) -> float:
        if self.first is None or self.last is None:
            return 0.0
        return (self.last - self.first).total_seconds()

    def summary(self) -> str:
        lines = [
            f"Points: {self.total_points}",
            f"  Manual: {self.manual} | Continuous: {self.continuous} | "
            f"Highlight: {self.highlights} | Other: {self.other}",
            f"Length: {self.length_km:.3f} km",
        ]
        if self.first is not None:
            lines.append(f"From: {self.first.isoformat()}")
            lines.append(f"To:   {self.last.isoformat()}")
            lines.append(f"Duration: {self.duration_s:.0f}s")
        return "\n".join(lines)


def analyze_track(records: list[PointRecord]) -> TrackStats:
    """Compute statistics from track records (file order)."""
    stats = TrackStats()
    if not records:
        return stats

    stats.total_points = len(records)
    for r in records:
        if r.kind is PointKind.MANUAL:
            stats.manual += 1
        elif r.kind is PointKind.CONTINUOUS:
            stats.continuous += 1
        elif r.kind is PointKind.HIGHLIGHT:
            stats.highlights += 1
        else:
            stats.other += 1

    stats.first = records[0].timestamp
    stats.last = records[-1].timestamp
    stats.length_km = path_length_km([r.position for r in records])
    return stats
