"""SectorCatalog — the read-only list of enforcement sectors and membership tests."""

from __future__ import annotations

import dataclasses
import json
import logging
import threading
from collections.abc import Sequence
from pathlib import Path

from sector_tracker.geo.distance import Coordinate, distance_to_segment_m, haversine_m
from sector_tracker.geo.models import GeoPoint
from sector_tracker.sectors.models import Sector

_logger = logging.getLogger(__name__)

_BUNDLED = Path(__file__).parent / "data" / "sectors.json"


def is_near_sector(point: GeoPoint, sector: Sector, threshold_m: float) -> bool:
    """True if *point* lies within *threshold_m* of the sector's geometry.

    Checks every segment of the route polyline (or the straight-line
    fallback) and the raw start/end camera points.
    """
    for endpoint in (sector.start, sector.end):
        if haversine_m(point.latitude, point.longitude, endpoint.lat, endpoint.lng) < threshold_m:
            return True
    geometry = sector.geometry()
    for i in range(len(geometry) - 1):
        if distance_to_segment_m(point, geometry[i], geometry[i + 1]) < threshold_m:
            return True
    return False


class SectorCatalog:
    """Ordered collection of :class:`Sector` definitions.

    Sector definitions never change at runtime; only their resolved route is
    swapped in wholesale by :meth:`attach_route`.  Catalog order is the
    tie-breaker when geometries of several sectors overlap.

    Parameters
    ----------
    sectors:
        Sectors in priority order.  Duplicated ids keep the first occurrence.
    """

    def __init__(self, sectors: Sequence[Sector]) -> None:
        self._lock = threading.Lock()
        self._sectors: list[Sector] = []
        seen: set[str] = set()
        for sector in sectors:
            if sector.id in seen:
                _logger.warning("Duplicate sector id %s ignored", sector.id)
                continue
            seen.add(sector.id)
            self._sectors.append(sector)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_json(cls, path: str | Path | None = None) -> SectorCatalog:
        """Load a catalog from JSON; the bundled official list when *path* is None.

        Malformed entries are skipped with a warning.
        """
        source = Path(path) if path is not None else _BUNDLED
        raw_entries = json.loads(source.read_text(encoding="utf-8"))
        sectors: list[Sector] = []
        for raw in raw_entries:
            try:
                sectors.append(Sector.from_dict(raw))
            except ValueError as exc:
                _logger.warning("Skipping sector from %s: %s", source.name, exc)
        _logger.info("Loaded %d sector(s) from %s", len(sectors), source.name)
        return cls(sectors)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._sectors)

    def __iter__(self):
        return iter(self.all())

    def all(self) -> list[Sector]:
        with self._lock:
            return list(self._sectors)

    def active(self) -> list[Sector]:
        return [s for s in self.all() if s.active]

    def get(self, sector_id: str) -> Sector | None:
        for sector in self.all():
            if sector.id == sector_id:
                return sector
        return None

    def find_containing(self, point: GeoPoint, threshold_m: float) -> Sector | None:
        """Return the first active sector within *threshold_m* of *point*, or None."""
        for sector in self.active():
            if is_near_sector(point, sector, threshold_m):
                return sector
        return None

    def attach_route(self, sector_id: str, route: Sequence[Coordinate] | None) -> Sector | None:
        """Replace the route of *sector_id*; returns the new sector (None if unknown id)."""
        with self._lock:
            for i, sector in enumerate(self._sectors):
                if sector.id == sector_id:
                    updated = dataclasses.replace(
                        sector, route=tuple(route) if route is not None else None
                    )
                    self._sectors[i] = updated
                    return updated
        return None

    def sectors_with_routes(self) -> list[Sector]:
        """Active sectors whose resolved route is a real road polyline (3+ points)."""
        return [s for s in self.active() if s.has_real_route()]
