"""Geographic data models."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class GeoPoint:
    """A WGS-84 position in decimal degrees."""

    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        """Return True if both coordinates are finite and within range."""
        return (
            math.isfinite(self.latitude)
            and math.isfinite(self.longitude)
            and -90.0 <= self.latitude <= 90.0
            and -180.0 <= self.longitude <= 180.0
        )


@dataclass(frozen=True)
class LocationFix:
    """A single GPS sample as delivered by the location source."""

    latitude: float
    """Latitude in decimal degrees."""

    longitude: float
    """Longitude in decimal degrees."""

    speed_kmh: float
    """Ground speed in km/h. Sources reporting m/s must convert first."""

    timestamp_ms: int
    """Fix time in epoch milliseconds."""

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)

    def is_valid(self) -> bool:
        """Return True if position and speed are usable (finite, in range, speed >= 0)."""
        return (
            self.point.is_valid()
            and math.isfinite(self.speed_kmh)
            and self.speed_kmh >= 0.0
        )

    @classmethod
    def from_dict(cls, raw: dict) -> LocationFix:
        """Build a fix from a loosely-typed dict.

        Accepts ``speed_kmh`` or ``speed`` (m/s, as platform location APIs
        report it) and ``timestamp_ms`` or ``timestamp``.

        Raises:
            ValueError: If a required field is missing or not numeric.
        """
        try:
            if "speed_kmh" in raw:
                speed = float(raw["speed_kmh"])
            else:
                speed = float(raw.get("speed") or 0.0) * 3.6
            ts = raw["timestamp_ms"] if "timestamp_ms" in raw else raw["timestamp"]
            return cls(
                latitude=float(raw["latitude"]),
                longitude=float(raw["longitude"]),
                speed_kmh=speed,
                timestamp_ms=int(ts),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed location fix: {raw!r}") from exc
