"""POST /api/violations, GET /api/violations and GET /api/violations/stats."""

from __future__ import annotations

from unittest.mock import MagicMock, patch


def test_save_violation(client, db, make_payload):
    resp = client.post("/api/violations", params={"db": db}, json=make_payload())
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["id"] >= 1


def test_save_rejects_invalid_record(client, db, make_payload):
    bad = make_payload(violation_type="parking")
    assert client.post("/api/violations", params={"db": db}, json=bad).status_code == 422

    bad = make_payload()
    bad["location"]["latitude"] = 123.0
    assert client.post("/api/violations", params={"db": db}, json=bad).status_code == 422


def test_history_pagination(client, db, make_payload):
    for day in range(1, 4):
        client.post(
            "/api/violations",
            params={"db": db},
            json=make_payload(timestamp=f"2026-03-0{day}T08:00:00Z"),
        )

    resp = client.get("/api/violations", params={"device_id": "dev-1", "limit": 2, "db": db})
    data = resp.json()
    assert data["total"] == 3
    assert data["has_more"] is True
    assert [v["timestamp"] for v in data["violations"]] == [
        "2026-03-03T08:00:00Z",
        "2026-03-02T08:00:00Z",
    ]
    assert data["violations"][0]["location"] == {"latitude": 42.0, "longitude": 23.0}

    resp = client.get(
        "/api/violations", params={"device_id": "dev-1", "limit": 2, "offset": 2, "db": db}
    )
    assert resp.json()["has_more"] is False


def test_history_filters_by_type(client, db, make_payload):
    client.post("/api/violations", params={"db": db}, json=make_payload())
    client.post(
        "/api/violations",
        params={"db": db},
        json=make_payload(violation_type="normal", current_speed=85),
    )
    resp = client.get(
        "/api/violations", params={"device_id": "dev-1", "violation_type": "normal", "db": db}
    )
    data = resp.json()
    assert data["total"] == 1
    assert data["violations"][0]["violation_type"] == "normal"


def test_history_requires_device_id(client, db):
    assert client.get("/api/violations", params={"db": db}).status_code == 422


def test_history_limit_bounds(client, db):
    resp = client.get("/api/violations", params={"device_id": "d", "limit": 101, "db": db})
    assert resp.status_code == 422


def test_stats(client, db, make_payload):
    client.post("/api/violations", params={"db": db}, json=make_payload(sector_id="a"))
    client.post("/api/violations", params={"db": db}, json=make_payload(sector_id="a"))
    client.post(
        "/api/violations",
        params={"db": db},
        json=make_payload(sector_id="b", violation_type="normal", current_speed=80),
    )

    resp = client.get("/api/violations/stats", params={"device_id": "dev-1", "db": db})
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_violations"] == 3
    assert data["speeding_violations"] == 2
    assert data["normal_passages"] == 1
    assert data["most_violated_sector"]["id"] == "a"
    assert data["period_summary"]["period"] == "daily"


def test_stats_rejects_unknown_period(client, db):
    resp = client.get(
        "/api/violations/stats", params={"device_id": "dev-1", "period": "hourly", "db": db}
    )
    assert resp.status_code == 422


def test_stats_value_error_maps_to_422(client):
    mock_store = MagicMock()
    mock_store.stats.side_effect = ValueError("bad range")
    with patch("sector_tracker.web.app.ViolationStorage", return_value=mock_store):
        resp = client.get("/api/violations/stats", params={"device_id": "dev-1"})
    assert resp.status_code == 422
    mock_store.close.assert_called_once()
