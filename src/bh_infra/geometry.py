"""
Planar geometry helpers.

WKT parsing is delegated to shapely; distances are computed directly on the
coordinate sequences so every candidate is measured with the same clamped
projection rule.
"""

import math
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np
from shapely import wkt
from shapely.errors import ShapelyError
from shapely.geometry import LineString, MultiLineString, Point, Polygon
from shapely.geometry.base import BaseGeometry

from .errors import GeometryError
from .models import BBox, Coordinate, Part


def parse_wkt(text: Optional[str]) -> Tuple[Part, ...]:
    """Parse a WKT geometry into polyline parts.

    LineString and MultiLineString map directly; a Polygon contributes its
    exterior ring and a Point a single-vertex part (kept, never indexed).

    Raises:
        GeometryError: If the text is blank, unparsable, empty or of an
            unsupported geometry type
    """
    if text is None or not str(text).strip():
        raise GeometryError("Missing geometry")

    try:
        geom = wkt.loads(str(text).strip())
    except (ShapelyError, ValueError, TypeError) as e:
        raise GeometryError(f"Unparsable geometry: {e}") from e

    if geom.is_empty:
        raise GeometryError("Empty geometry")

    return geometry_to_parts(geom)


def geometry_to_parts(geom: BaseGeometry) -> Tuple[Part, ...]:
    """Convert a shapely geometry into coordinate parts."""
    if isinstance(geom, LineString):
        lines = [geom]
    elif isinstance(geom, MultiLineString):
        lines = list(geom.geoms)
    elif isinstance(geom, Polygon):
        lines = [geom.exterior]
    elif isinstance(geom, Point):
        return (((float(geom.x), float(geom.y)),),)
    else:
        raise GeometryError(f"Unsupported geometry type: {geom.geom_type}")

    parts = tuple(
        tuple((float(c[0]), float(c[1])) for c in line.coords)
        for line in lines
        if not line.is_empty
    )
    if not parts:
        raise GeometryError("Geometry has no coordinates")
    return parts


def parts_to_wkt(parts: Sequence[Part]) -> Optional[str]:
    """Serialize parts back to WKT (LineString for one part, else MultiLineString)."""
    if not parts:
        return None
    if len(parts) == 1:
        if len(parts[0]) == 1:
            return Point(parts[0][0]).wkt
        return LineString(parts[0]).wkt
    return MultiLineString([p for p in parts if len(p) >= 2]).wkt


def compute_bbox(parts: Iterable[Part]) -> Optional[BBox]:
    """Axis-aligned bounding box over all parts with >= 2 valid coordinates.

    Returns:
        (minx, miny, maxx, maxy) or None when no part is usable
    """
    xs = []
    ys = []
    for part in parts:
        coords = [(x, y) for x, y in part if math.isfinite(x) and math.isfinite(y)]
        if len(coords) < 2:
            continue
        xs.extend(x for x, _ in coords)
        ys.extend(y for _, y in coords)

    if not xs:
        return None
    return (min(xs), min(ys), max(xs), max(ys))


def point_polyline_distance(point: Coordinate, part: Sequence[Coordinate]) -> float:
    """Minimum distance from a point to a polyline, over all vertex pairs.

    Non-finite vertices are dropped first; fewer than two vertices gives inf.
    """
    coords = np.asarray(part, dtype=float).reshape(-1, 2)
    coords = coords[np.isfinite(coords).all(axis=1)]
    if len(coords) < 2:
        return math.inf

    px, py = point
    start = coords[:-1]
    ab = coords[1:] - start
    ab2 = (ab * ab).sum(axis=1)
    ap = np.array([px, py]) - start

    with np.errstate(divide="ignore", invalid="ignore"):
        t = np.where(ab2 > 0, (ap * ab).sum(axis=1) / ab2, 0.0)
    t = np.clip(t, 0.0, 1.0)

    closest = start + ab * t[:, None]
    return float(np.hypot(px - closest[:, 0], py - closest[:, 1]).min())


def point_geometry_distance(point: Coordinate, parts: Iterable[Part]) -> float:
    """Minimum distance from a point to any part of a multi-part geometry."""
    best = math.inf
    for part in parts:
        d = point_polyline_distance(point, part)
        if d < best:
            best = d
    return best
