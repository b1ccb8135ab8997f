"""Sector definitions, the sector catalog and road route resolution."""

from sector_tracker.sectors.catalog import SectorCatalog, is_near_sector
from sector_tracker.sectors.models import Sector, SectorEndpoint
from sector_tracker.sectors.routing import RouteLoader, RouteProvider

__all__ = [
    "RouteLoader",
    "RouteProvider",
    "Sector",
    "SectorCatalog",
    "SectorEndpoint",
    "is_near_sector",
]
