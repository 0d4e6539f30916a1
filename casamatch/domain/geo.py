# casamatch/domain/geo.py
"""
Plain-float geometry for buyer search areas.

Points are (lng, lat) tuples, the order buyer polygons are stored in.
Distances are only used for reasoning strings, so a spherical earth is fine.
"""
from __future__ import annotations

import json
import math
from typing import Any, Sequence

Point = tuple[float, float]

EARTH_RADIUS_M = 6_371_000.0
_EPS = 1e-12


def close_polygon(points: Sequence[Point]) -> list[Point]:
    pts = [(float(x), float(y)) for x, y in points]
    if pts and pts[0] != pts[-1]:
        pts.append(pts[0])
    return pts


def distinct_vertices(points: Sequence[Point]) -> int:
    return len({(float(x), float(y)) for x, y in points})


def _on_segment(p: Point, a: Point, b: Point) -> bool:
    (px, py), (ax, ay), (bx, by) = p, a, b
    cross = (px - ax) * (by - ay) - (py - ay) * (bx - ax)
    if abs(cross) > _EPS:
        return False
    return min(ax, bx) - _EPS <= px <= max(ax, bx) + _EPS and min(ay, by) - _EPS <= py <= max(ay, by) + _EPS


def point_in_polygon(point: Point, polygon: Sequence[Point]) -> bool:
    """
    Ray casting. A point on an edge or vertex counts as inside; the polygon
    is closed automatically when the last vertex differs from the first.
    """
    ring = close_polygon(polygon)
    if len(ring) < 4:
        return False

    x, y = float(point[0]), float(point[1])
    inside = False
    for a, b in zip(ring, ring[1:]):
        if _on_segment((x, y), a, b):
            return True
        (ax, ay), (bx, by) = a, b
        if (ay > y) != (by > y):
            x_cross = ax + (y - ay) * (bx - ax) / (by - ay)
            if x < x_cross:
                inside = not inside
    return inside


def haversine_m(a: Point, b: Point) -> float:
    lng1, lat1 = map(math.radians, a)
    lng2, lat2 = map(math.radians, b)
    h = math.sin((lat2 - lat1) / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def parse_polygon(raw: Any) -> tuple[Point, ...] | None:
    """
    Accepts a JSON string or an already-decoded list of [lng, lat] pairs.
    Anything malformed, or with fewer than three distinct vertices, is no polygon.
    """
    if raw is None or raw == "":
        return None
    data = raw
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(data, (list, tuple)):
        return None

    pts: list[Point] = []
    for item in data:
        if not isinstance(item, (list, tuple)) or len(item) < 2:
            return None
        try:
            pts.append((float(item[0]), float(item[1])))
        except (TypeError, ValueError):
            return None

    if distinct_vertices(pts) < 3:
        return None
    return tuple(pts)
