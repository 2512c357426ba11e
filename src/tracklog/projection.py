"""Scene projection: what the map should show for a catalog and mode.

``project`` is a pure function of the catalog, the mode and a file reader.
The result is renderer-agnostic; ``scene_to_geojson`` turns it into a
GeoJSON FeatureCollection any web map can display.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Sequence

from shared.geo import GeoPoint
from tracklog.catalog import Catalog
from tracklog.codec import PointRecord
from tracklog.engine import Mode

MANUAL_LINE_WIDTH = 15
CONTINUOUS_LINE_WIDTH = 8
MANUAL_ZOOM = 15
CONTINUOUS_ZOOM = 18
HIGHLIGHT_SUFFIX = " (Highlight)"

ReadFn = Callable[[str], Sequence[PointRecord]]


@dataclass(frozen=True, slots=True)
class Polyline:
    points: list[GeoPoint]
    color: int  # ARGB
    width: int  # px


@dataclass(frozen=True, slots=True)
class Marker:
    position: GeoPoint
    label: str


@dataclass(frozen=True, slots=True)
class Camera:
    center: GeoPoint
    zoom: int


@dataclass(slots=True)
class Scene:
    polylines: list[Polyline] = field(default_factory=list)
    markers: list[Marker] = field(default_factory=list)
    camera: Camera | None = None  # None: renderer keeps its camera


def project(catalog: Catalog, mode: Mode, read_fn: ReadFn) -> Scene:
    """Build the scene for all visible tracks.

    ``read_fn`` is called at most once per track file.
    """
    cache: dict[str, Sequence[PointRecord]] = {}

    def read(filename: str) -> Sequence[PointRecord]:
        if filename not in cache:
            cache[filename] = read_fn(filename)
        return cache[filename]

    scene = Scene()
    width = CONTINUOUS_LINE_WIDTH if mode.continuous else MANUAL_LINE_WIDTH

    for entry in catalog.entries:
        if not entry.visible:
            continue
        track = entry.descriptor
        recs = read(track.filename)

        if len(recs) >= 2:
            scene.polylines.append(Polyline(
                points=[r.position for r in recs], color=track.color, width=width,
            ))

        if mode.continuous:
            label = track.name + HIGHLIGHT_SUFFIX
            scene.markers.extend(Marker(r.position, label) for r in recs if r.is_highlight)
        else:
            scene.markers.extend(Marker(r.position, track.name) for r in recs)

    current = catalog.current
    if current is not None:
        recs = read(current.filename)
        if recs:
            scene.camera = Camera(
                center=recs[-1].position,
                zoom=CONTINUOUS_ZOOM if mode.continuous else MANUAL_ZOOM,
            )

    return scene


def argb_to_hex(color: int) -> tuple[str, float]:
    """Split an ARGB int into a ``#rrggbb`` string and an opacity in [0, 1]."""
    alpha = (color >> 24) & 0xFF
    return f"#{color & 0xFFFFFF:06x}", round(alpha / 255, 3)


def scene_to_geojson(scene: Scene) -> dict:
    """Convert a scene to a GeoJSON FeatureCollection."""
    features = []
    for line in scene.polylines:
        stroke, opacity = argb_to_hex(line.color)
        features.append({
            "type": "Feature",
            "geometry": {
                "type": "LineString",
                "coordinates": [[p.lon, p.lat] for p in line.points],
            },
            "properties": {
                "stroke": stroke,
                "stroke-opacity": opacity,
                "stroke-width": line.width,
            },
        })

    for m in scene.markers:
        features.append({
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [m.position.lon, m.position.lat]},
            "properties": {"title": m.label},
        })

    geojson: dict = {"type": "FeatureCollection", "features": features}
    if scene.camera is not None:
        geojson["camera"] = {
            "center": [scene.camera.center.lon, scene.camera.center.lat],
            "zoom": scene.camera.zoom,
        }
    return geojson
