"""Geometry utilities for zone geofencing"""

import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from shapely.geometry import LinearRing, Polygon

from zonemap.models import Vertex, Zone
from zonemap.utils.exceptions import InvalidPolygonError

# Meters per degree of latitude (spherical approximation)
METERS_PER_DEGREE = 111_320.0

PointLike = Union[Vertex, Tuple[float, float]]


def has_valid_coordinates(lat: Optional[float], lng: Optional[float]) -> bool:
    """True when both coordinates are present and finite"""
    if lat is None or lng is None:
        return False
    try:
        return math.isfinite(lat) and math.isfinite(lng)
    except TypeError:
        return False


def coerce_vertices(raw: Iterable[Any]) -> Tuple[Vertex, ...]:
    """Accept vertices as Vertex, {"lat", "lng"} dicts or (lat, lng) pairs"""
    vertices = []
    for item in raw:
        if isinstance(item, Vertex):
            vertices.append(item)
        elif isinstance(item, dict):
            vertices.append(Vertex.from_dict(item))
        else:
            lat, lng = item
            vertices.append(Vertex(lat=float(lat), lng=float(lng)))
    return tuple(vertices)


def ray_cast(x: float, y: float, ring: Sequence[Tuple[float, float]]) -> bool:
    """
    Even-odd ray casting over an (x, y) ring.

    A horizontal ray is cast from the point; ``inside`` flips on every edge
    it crosses. Boundaries are half-open: points on a bottom or left edge
    (vertices included) count as inside, points on a top or right edge as
    outside.
    """
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def is_point_in_polygon(point: PointLike, polygon: Sequence[Vertex]) -> bool:
    """
    Check if a point lies inside a polygon (x = lng, y = lat).

    Polygons with fewer than 3 vertices are treated as "no polygon" and
    keep every point.
    """
    if len(polygon) < 3:
        return True

    if isinstance(point, Vertex):
        lat, lng = point.lat, point.lng
    else:
        lat, lng = point

    if not has_valid_coordinates(lat, lng):
        return False

    return ray_cast(lng, lat, [(v.lng, v.lat) for v in polygon])


def is_self_intersecting(vertices: Sequence[Vertex]) -> bool:
    """True when the closed ring crosses itself"""
    if len(vertices) < 3:
        return False
    ring = LinearRing([(v.lng, v.lat) for v in vertices])
    return not ring.is_simple


def validate_polygon(vertices: Sequence[Vertex]) -> Tuple[Vertex, ...]:
    """
    Validate a closed polygon for containment testing

    Raises:
        InvalidPolygonError: fewer than 3 vertices, non-finite coordinates,
            zero area or a self-intersecting ring
    """
    vertices = tuple(vertices)
    if len(vertices) < 3:
        raise InvalidPolygonError(f"Polygon needs at least 3 vertices, got {len(vertices)}")

    if not all(has_valid_coordinates(v.lat, v.lng) for v in vertices):
        raise InvalidPolygonError("Polygon vertices must have finite coordinates")

    if is_self_intersecting(vertices):
        raise InvalidPolygonError("Polygon edges must not intersect each other")

    if Polygon([(v.lng, v.lat) for v in vertices]).area == 0:
        raise InvalidPolygonError("Polygon has no area (collinear or repeated vertices)")

    return vertices


def polygon_centroid(vertices: Sequence[Vertex]) -> Optional[Vertex]:
    """Mean of the vertices, used to recenter the map on a zone"""
    if not vertices:
        return None
    return Vertex(
        lat=sum(v.lat for v in vertices) / len(vertices),
        lng=sum(v.lng for v in vertices) / len(vertices),
    )


def _projected(vertices: Sequence[Vertex]) -> List[Tuple[float, float]]:
    """Project to local meters around the polygon's mean latitude"""
    mean_lat = sum(v.lat for v in vertices) / len(vertices)
    lng_scale = METERS_PER_DEGREE * math.cos(math.radians(mean_lat))
    coords = [(v.lng * lng_scale, v.lat * METERS_PER_DEGREE) for v in vertices]
    return coords + coords[:1]


def calculate_polygon_area(vertices: Sequence[Vertex]) -> float:
    """Approximate area in square meters using the shoelace formula"""
    if len(vertices) < 3:
        return 0.0

    coords = _projected(vertices)
    area = 0.0
    for (x1, y1), (x2, y2) in zip(coords, coords[1:]):
        area += x1 * y2 - x2 * y1

    return abs(area) / 2.0


def calculate_polygon_perimeter(vertices: Sequence[Vertex]) -> float:
    """Approximate perimeter in meters"""
    if len(vertices) < 2:
        return 0.0

    coords = _projected(vertices)
    return sum(
        math.hypot(x2 - x1, y2 - y1)
        for (x1, y1), (x2, y2) in zip(coords, coords[1:])
    )


def describe_polygon(vertices: Sequence[Vertex]) -> Dict[str, Any]:
    """Validity report for a drawn polygon"""
    vertices = tuple(vertices)
    report: Dict[str, Any] = {
        "vertex_count": len(vertices),
        "valid": True,
        "error": None,
    }

    try:
        validate_polygon(vertices)
    except InvalidPolygonError as e:
        report["valid"] = False
        report["error"] = str(e)
        return report

    centroid = polygon_centroid(vertices)
    report.update({
        "area_m2": round(calculate_polygon_area(vertices), 2),
        "perimeter_m": round(calculate_polygon_perimeter(vertices), 2),
        "centroid": centroid.to_dict() if centroid else None,
    })
    return report


def find_zone_for_coordinates(point: PointLike, zones: Iterable[Zone]) -> Optional[Zone]:
    """First zone whose polygon contains the point, None when it is in none"""
    for zone in zones:
        # Degenerate zones would otherwise claim every point
        if len(zone.vertices) < 3:
            continue
        if is_point_in_polygon(point, zone.vertices):
            return zone
    return None
