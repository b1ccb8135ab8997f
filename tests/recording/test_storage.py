"""ViolationStorage persistence, history queries and statistics."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from sector_tracker.recording.models import ViolationRecord
from sector_tracker.recording.storage import ViolationStorage, to_utc_text


def _record(
    sector_id: str = "s1",
    speed: float = 100.0,
    violation_type: str = "speeding",
    day: int = 1,
    hour: int = 12,
    device_id: str = "dev-1",
) -> ViolationRecord:
    return ViolationRecord(
        device_id=device_id,
        sector_id=sector_id,
        sector_name=f"Sector {sector_id}",
        speed_limit=90.0,
        current_speed=speed,
        violation_type=violation_type,
        location={"latitude": 42.0, "longitude": 23.0},
        timestamp=datetime(2026, 3, day, hour, tzinfo=timezone.utc),
    )


@pytest.fixture
def storage(tmp_path):
    s = ViolationStorage(str(tmp_path / "violations.db"))
    yield s
    s.close()


def test_to_utc_text():
    assert to_utc_text(datetime(2026, 3, 1, 12, 30, 5)) == "2026-03-01T12:30:05Z"


def test_save_returns_increasing_ids(storage):
    first = storage.save(_record())
    second = storage.save(_record())
    assert second > first


def test_history_newest_first_with_total(storage):
    for day in (1, 3, 2):
        storage.save(_record(day=day))
    storage.save(_record(device_id="other"))

    rows, total = storage.history("dev-1", limit=2)
    assert total == 3
    assert [r["timestamp"] for r in rows] == ["2026-03-03T12:00:00Z", "2026-03-02T12:00:00Z"]

    rows, _ = storage.history("dev-1", limit=2, offset=2)
    assert [r["timestamp"] for r in rows] == ["2026-03-01T12:00:00Z"]


def test_history_filters(storage):
    storage.save(_record(day=1, violation_type="normal", speed=80))
    storage.save(_record(day=2))
    storage.save(_record(day=3))

    rows, total = storage.history("dev-1", violation_type="normal")
    assert total == 1 and rows[0]["violation_type"] == "normal"

    _, total = storage.history(
        "dev-1",
        date_from=datetime(2026, 3, 2, tzinfo=timezone.utc),
        date_to=datetime(2026, 3, 2, 23, 59, tzinfo=timezone.utc),
    )
    assert total == 1


def test_stats(storage):
    storage.save(_record("a", speed=110, day=1))
    storage.save(_record("a", speed=100, day=2))
    storage.save(_record("a", speed=105, day=2))
    storage.save(_record("b", speed=80, violation_type="normal", day=2))
    storage.save(_record("b", speed=95, day=1))

    stats = storage.stats("dev-1")
    assert stats["total_violations"] == 5
    assert stats["speeding_violations"] == 4
    assert stats["normal_passages"] == 1
    assert stats["average_speed"] == pytest.approx(98.0)
    assert stats["max_speed"] == 110
    assert stats["most_violated_sector"] == {"id": "a", "name": "Sector a", "violations": 3}
    assert stats["daily_breakdown"] == [
        {"date": "2026-03-01", "violations": 2, "normal": 0},
        {"date": "2026-03-02", "violations": 2, "normal": 1},
    ]
    assert stats["period_summary"] == {
        "period": "daily",
        "violations_trend": "stable",
        "improvement_percentage": 0.0,
    }


def test_stats_monthly_and_trend(storage):
    storage.save(_record(day=1))
    storage.save(_record(day=1, hour=13))
    storage.save(_record(day=2))

    daily = storage.stats("dev-1")
    assert daily["period_summary"]["violations_trend"] == "decreasing"
    assert daily["period_summary"]["improvement_percentage"] == 50.0

    monthly = storage.stats("dev-1", period="monthly")
    assert monthly["daily_breakdown"] == [{"date": "2026-03", "violations": 3, "normal": 0}]


def test_stats_empty(storage):
    stats = storage.stats("nobody")
    assert stats["total_violations"] == 0
    assert stats["most_violated_sector"] is None
    assert stats["daily_breakdown"] == []


def test_stats_unknown_period(storage):
    with pytest.raises(ValueError):
        storage.stats("dev-1", period="hourly")
