"""Shared fixtures for web tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from sector_tracker.web.app import app


@pytest.fixture
def client():
    """FastAPI test client."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(tmp_path) -> str:
    """Path of a fresh SQLite file passed to endpoints via the ``db`` query parameter."""
    return str(tmp_path / "violations.db")


@pytest.fixture
def make_payload():
    """Factory for a POST /api/violations body."""

    def _make(
        device_id: str = "dev-1",
        sector_id: str = "s1",
        current_speed: float = 104.0,
        violation_type: str = "speeding",
        timestamp: str = "2026-03-01T12:00:00Z",
    ) -> dict:
        return {
            "device_id": device_id,
            "sector_id": sector_id,
            "sector_name": f"Sector {sector_id}",
            "speed_limit": 90,
            "current_speed": current_speed,
            "violation_type": violation_type,
            "location": {"latitude": 42.0, "longitude": 23.0},
            "timestamp": timestamp,
        }

    return _make
