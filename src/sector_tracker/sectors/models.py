"""Sector data structures."""

from __future__ import annotations

import math
from dataclasses import dataclass

from sector_tracker.geo.distance import Coordinate, polyline_length_m
from sector_tracker.geo.models import GeoPoint


@dataclass(frozen=True)
class SectorEndpoint:
    """One camera point delimiting a sector."""

    lat: float
    lng: float
    name: str = ""
    km: float | None = None
    """Road kilometre marker, if known."""

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.lat, self.lng)

    @property
    def coordinate(self) -> Coordinate:
        """``(lng, lat)`` pair in polyline order."""
        return (self.lng, self.lat)


@dataclass(frozen=True)
class Sector:
    """An average-speed enforcement sector.

    Instances are immutable; resolving a route produces a new instance via
    :func:`dataclasses.replace`.
    """

    id: str
    name: str
    speed_limit: float
    """Posted average-speed limit in km/h."""

    start: SectorEndpoint
    end: SectorEndpoint
    active: bool = True
    route_name: str = ""
    description: str = ""
    distance_km: float | None = None
    """Officially published sector length, informational only."""

    route: tuple[Coordinate, ...] | None = None
    """Road polyline as ``(lng, lat)`` pairs, once resolved."""

    def validate(self) -> None:
        """Raise ValueError if the sector cannot be tracked."""
        if not self.id:
            raise ValueError("Sector id must not be empty")
        if not (math.isfinite(self.speed_limit) and self.speed_limit > 0):
            raise ValueError(f"Sector {self.id}: speed limit must be positive")
        for endpoint in (self.start, self.end):
            if not endpoint.point.is_valid():
                raise ValueError(f"Sector {self.id}: invalid endpoint {endpoint!r}")

    def straight_line(self) -> tuple[Coordinate, Coordinate]:
        return (self.start.coordinate, self.end.coordinate)

    def geometry(self) -> tuple[Coordinate, ...]:
        """The route polyline when usable, else the start→end straight line."""
        if self.route is not None and len(self.route) >= 2:
            return self.route
        return self.straight_line()

    def has_real_route(self) -> bool:
        """True when a resolved road route (3+ points) is attached."""
        return self.route is not None and len(self.route) >= 3

    def total_distance_m(self) -> float:
        """Length of :meth:`geometry` in metres."""
        return polyline_length_m(self.geometry())

    @classmethod
    def from_dict(cls, raw: dict) -> Sector:
        """Build a sector from catalog JSON (camelCase keys as published).

        Raises:
            ValueError: On missing fields or values failing :meth:`validate`.
        """
        try:
            start = raw["startPoint"]
            end = raw["endPoint"]
            route = raw.get("routeCoordinates")
            sector = cls(
                id=str(raw["id"]),
                name=str(raw["name"]),
                speed_limit=float(raw["speedLimit"]),
                start=_endpoint(start),
                end=_endpoint(end),
                active=bool(raw.get("active", True)),
                route_name=str(raw.get("route", "")),
                description=str(raw.get("description", "")),
                distance_km=float(raw["distance"]) if raw.get("distance") is not None else None,
                route=tuple((float(lng), float(lat)) for lng, lat in route) if route else None,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed sector entry: {exc}") from exc
        sector.validate()
        return sector

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "route": self.route_name,
            "speedLimit": self.speed_limit,
            "distance": self.distance_km,
            "description": self.description,
            "startPoint": _endpoint_dict(self.start),
            "endPoint": _endpoint_dict(self.end),
            "active": self.active,
            "routeCoordinates": [list(c) for c in self.route] if self.route else None,
        }


def _endpoint(raw: dict) -> SectorEndpoint:
    km = raw.get("km")
    return SectorEndpoint(
        lat=float(raw["lat"]),
        lng=float(raw["lng"]),
        name=str(raw.get("name", "")),
        km=float(km) if km is not None else None,
    )


def _endpoint_dict(endpoint: SectorEndpoint) -> dict:
    return {"lat": endpoint.lat, "lng": endpoint.lng, "name": endpoint.name, "km": endpoint.km}
