"""Shared fixtures: a straight north-bound sector and fixes placed along it."""

from __future__ import annotations

import math

import pytest

from sector_tracker.geo.distance import EARTH_RADIUS_M
from sector_tracker.geo.models import LocationFix
from sector_tracker.sectors.models import Sector, SectorEndpoint

BASE_LAT = 42.0
BASE_LNG = 23.0


def metres_to_lat(metres: float) -> float:
    """Latitude offset (degrees) covering *metres* along a meridian."""
    return math.degrees(metres / EARTH_RADIUS_M)


@pytest.fixture
def make_sector():
    """Factory for a straight sector running north from (lat, lng) for *length_m*."""

    def _make(
        sector_id: str = "s1",
        lat: float = BASE_LAT,
        lng: float = BASE_LNG,
        length_m: float = 2000.0,
        speed_limit: float = 90.0,
        active: bool = True,
        route=None,
    ) -> Sector:
        return Sector(
            id=sector_id,
            name=f"Sector {sector_id}",
            speed_limit=speed_limit,
            start=SectorEndpoint(lat=lat, lng=lng, name="start"),
            end=SectorEndpoint(lat=lat + metres_to_lat(length_m), lng=lng, name="end"),
            active=active,
            route=route,
        )

    return _make


@pytest.fixture
def make_fix():
    """Factory for a fix *along_m* metres north of the sector start (negative = south)."""

    def _make(
        along_m: float,
        t_ms: int,
        speed_kmh: float = 100.0,
        lat: float = BASE_LAT,
        lng: float = BASE_LNG,
    ) -> LocationFix:
        return LocationFix(
            latitude=lat + metres_to_lat(along_m),
            longitude=lng,
            speed_kmh=speed_kmh,
            timestamp_ms=t_ms,
        )

    return _make
