"""Great-circle and polyline distances.

Polylines are sequences of ``(lng, lat)`` pairs, the GeoJSON coordinate order
returned by directions services.  Segment projection uses a local planar
approximation (lng/lat treated as Cartesian), which is accurate enough at
sector scale (single-digit kilometres) for an 80-150 m detection threshold.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from sector_tracker.geo.models import GeoPoint

EARTH_RADIUS_M = 6_371_000.0

Coordinate = tuple[float, float]  # (lng, lat)


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two positions in metres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_M * 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))


def distance_to_segment_m(point: GeoPoint, start: Coordinate, end: Coordinate) -> float:
    """Distance in metres from *point* to the segment *start* → *end*.

    The projection parameter is clamped to [0, 1], so points beyond either end
    measure to the nearest endpoint.  A zero-length segment degenerates to the
    distance to *start*.
    """
    lng1, lat1 = start
    lng2, lat2 = end

    ax = point.longitude - lng1
    ay = point.latitude - lat1
    cx = lng2 - lng1
    cy = lat2 - lat1

    len_sq = cx * cx + cy * cy
    t = (ax * cx + ay * cy) / len_sq if len_sq > 0.0 else 0.0
    t = min(1.0, max(0.0, t))

    return haversine_m(point.latitude, point.longitude, lat1 + t * cy, lng1 + t * cx)


def polyline_length_m(polyline: Sequence[Coordinate]) -> float:
    """Sum of haversine distances between consecutive polyline vertices."""
    total = 0.0
    for (lng1, lat1), (lng2, lat2) in zip(polyline, polyline[1:]):
        total += haversine_m(lat1, lng1, lat2, lng2)
    return total


def nearest_segment(point: GeoPoint, polyline: Sequence[Coordinate]) -> tuple[int, float]:
    """Return ``(segment_index, distance_m)`` of the polyline segment closest to *point*.

    Ties resolve to the lowest index.

    Raises:
        ValueError: If *polyline* has fewer than 2 points.
    """
    if len(polyline) < 2:
        raise ValueError("A polyline needs at least 2 points")

    best_idx = 0
    best_dist = math.inf
    for i in range(len(polyline) - 1):
        d = distance_to_segment_m(point, polyline[i], polyline[i + 1])
        if d < best_dist:
            best_dist = d
            best_idx = i
    return best_idx, best_dist


def distance_along_m(point: GeoPoint, polyline: Sequence[Coordinate]) -> float:
    """Distance travelled from the polyline start to *point*, in metres.

    Full lengths of the segments preceding the nearest segment, plus the
    straight distance from the nearest segment's first vertex to *point*.
    """
    idx, _ = nearest_segment(point, polyline)
    travelled = polyline_length_m(polyline[: idx + 1])
    lng, lat = polyline[idx]
    return travelled + haversine_m(lat, lng, point.latitude, point.longitude)
