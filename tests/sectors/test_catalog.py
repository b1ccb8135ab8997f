"""Sector model, catalog loading and membership tests."""

from __future__ import annotations

import json

import pytest

from sector_tracker.geo.models import GeoPoint
from sector_tracker.sectors.catalog import SectorCatalog, is_near_sector
from sector_tracker.sectors.models import Sector


def _raw_sector(sector_id: str = "x1", **overrides) -> dict:
    raw = {
        "id": sector_id,
        "name": "Test sector",
        "route": "A1",
        "speedLimit": 120,
        "distance": 5.2,
        "startPoint": {"lat": 42.5, "lng": 24.5, "name": "km 10", "km": 10},
        "endPoint": {"lat": 42.55, "lng": 24.55, "name": "km 15", "km": 15},
        "active": True,
    }
    raw.update(overrides)
    return raw


def test_bundled_catalog_loads():
    catalog = SectorCatalog.from_json()
    assert len(catalog) >= 1
    for sector in catalog:
        assert sector.speed_limit > 0
        assert sector.start.point.is_valid()


def test_from_json_skips_malformed_entries(tmp_path, caplog):
    path = tmp_path / "sectors.json"
    path.write_text(
        json.dumps([_raw_sector("ok"), _raw_sector("bad", speedLimit=0), {"id": "x"}]),
        encoding="utf-8",
    )
    catalog = SectorCatalog.from_json(path)
    assert [s.id for s in catalog] == ["ok"]
    assert "Skipping sector" in caplog.text


def test_sector_round_trips_through_dict():
    sector = Sector.from_dict(_raw_sector(routeCoordinates=[[24.5, 42.5], [24.52, 42.52], [24.55, 42.55]]))
    assert Sector.from_dict(sector.to_dict()) == sector
    assert sector.has_real_route()


def test_geometry_falls_back_to_straight_line(make_sector):
    sector = make_sector()
    assert sector.geometry() == sector.straight_line()
    assert not sector.has_real_route()
    assert sector.total_distance_m() == pytest.approx(2000.0, rel=1e-6)


def test_is_near_sector_thresholds(make_sector, make_fix):
    sector = make_sector()
    assert is_near_sector(make_fix(1000, 0).point, sector, 80)
    assert is_near_sector(make_fix(-50, 0).point, sector, 80)
    assert not is_near_sector(make_fix(-100, 0).point, sector, 80)
    assert is_near_sector(make_fix(2100, 0).point, sector, 120)
    assert not is_near_sector(make_fix(2200, 0).point, sector, 120)


def test_is_near_sector_lateral_offset(make_sector):
    sector = make_sector()
    # ~0.0005 deg of longitude at 42N is roughly 41 m
    assert is_near_sector(GeoPoint(42.005, 23.0005), sector, 80)
    assert not is_near_sector(GeoPoint(42.005, 23.002), sector, 80)


def test_find_containing_prefers_catalog_order(make_sector, make_fix):
    catalog = SectorCatalog([make_sector("first"), make_sector("second")])
    assert catalog.find_containing(make_fix(500, 0).point, 80).id == "first"


def test_find_containing_skips_inactive(make_sector, make_fix):
    catalog = SectorCatalog([make_sector("off", active=False), make_sector("on")])
    assert catalog.find_containing(make_fix(500, 0).point, 80).id == "on"
    assert [s.id for s in catalog.active()] == ["on"]


def test_find_containing_none_when_far(make_sector, make_fix):
    catalog = SectorCatalog([make_sector()])
    assert catalog.find_containing(make_fix(-5000, 0).point, 80) is None


def test_duplicate_ids_keep_first(make_sector):
    catalog = SectorCatalog([make_sector("a", speed_limit=90), make_sector("a", speed_limit=60)])
    assert len(catalog) == 1
    assert catalog.get("a").speed_limit == 90


def test_attach_route_replaces_sector(make_sector):
    catalog = SectorCatalog([make_sector("a")])
    original = catalog.get("a")
    route = [(23.0, 42.0), (23.001, 42.009), (23.0, 42.018)]
    updated = catalog.attach_route("a", route)
    assert updated.route == tuple(route)
    assert catalog.get("a") is updated
    assert original.route is None
    assert catalog.sectors_with_routes() == [updated]
    assert catalog.attach_route("missing", route) is None
