"""Geodesy primitives: points, fixes and distances on the Earth's surface."""

from sector_tracker.geo.distance import (
    distance_along_m,
    distance_to_segment_m,
    haversine_m,
    nearest_segment,
    polyline_length_m,
)
from sector_tracker.geo.models import GeoPoint, LocationFix

__all__ = [
    "GeoPoint",
    "LocationFix",
    "distance_along_m",
    "distance_to_segment_m",
    "haversine_m",
    "nearest_segment",
    "polyline_length_m",
]
