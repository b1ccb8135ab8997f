"""Snapshot persistence and foreground/background reconciliation."""

from __future__ import annotations

import json

import pytest

from sector_tracker.config import NotificationSettings
from sector_tracker.sectors.catalog import SectorCatalog
from sector_tracker.tracking.continuity import (
    ContinuityBridge,
    ContinuitySnapshot,
    JsonStateStore,
    SyncResult,
)
from sector_tracker.tracking.state_machine import SectorTracker


@pytest.fixture
def catalog(make_sector):
    return SectorCatalog([make_sector("a"), make_sector("b", lat=43.0)])


def _tracker(catalog) -> SectorTracker:
    return SectorTracker(catalog, settings=NotificationSettings(early_warning_enabled=False))


def _drive_into_a(tracker, make_fix) -> None:
    for i, along in enumerate([0, 100, 400, 700]):
        tracker.process(make_fix(along, i * 1000, speed_kmh=90 + i * 10))
    assert tracker.state.current_sector_id == "a"


def test_restore_of_snapshot_round_trips(catalog, make_fix, tmp_path):
    tracker = _tracker(catalog)
    _drive_into_a(tracker, make_fix)
    bridge = ContinuityBridge(tracker, JsonStateStore(tmp_path / "s.json"), _clock_ms=lambda: 42)

    restored = bridge.restore(bridge.snapshot())
    assert restored.current_sector_id == "a"
    assert restored.entry_time_ms == tracker.state.entry_time_ms
    assert restored.speed_readings == tracker.state.speed_readings
    assert restored.current_average_speed == tracker.state.current_average_speed
    assert restored.total_distance_m == pytest.approx(2000.0, rel=1e-6)


def test_snapshot_dict_round_trip(catalog, make_fix, tmp_path):
    tracker = _tracker(catalog)
    _drive_into_a(tracker, make_fix)
    bridge = ContinuityBridge(tracker, JsonStateStore(tmp_path / "s.json"), _clock_ms=lambda: 42)
    snap = bridge.snapshot()
    assert ContinuitySnapshot.from_dict(json.loads(json.dumps(snap.to_dict()))) == snap
    assert snap.saved_at_ms == 42


def test_snapshot_requires_sector_and_entry_together():
    with pytest.raises(ValueError):
        ContinuitySnapshot.from_dict({"schema_version": 1, "current_sector_id": "a"})
    with pytest.raises(ValueError):
        ContinuitySnapshot.from_dict({"schema_version": 99})


def test_restore_unknown_sector_is_idle(catalog, tmp_path):
    bridge = ContinuityBridge(_tracker(catalog), JsonStateStore(tmp_path / "s.json"))
    state = bridge.restore(ContinuitySnapshot(current_sector_id="gone", entry_time_ms=1))
    assert not state.in_sector


def test_store_save_and_load(tmp_path):
    store = JsonStateStore(tmp_path / "nested" / "state.json")
    assert store.load() is None
    snap = ContinuitySnapshot(current_sector_id="a", entry_time_ms=5, speed_readings=(80.0,))
    store.save(snap)
    assert store.load() == snap
    store.clear()
    assert store.load() is None


def test_store_ignores_corrupt_file(tmp_path, caplog):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonStateStore(path).load() is None
    assert "unreadable" in caplog.text


def test_sync_adopts_persisted_session(catalog, make_fix, tmp_path):
    store = JsonStateStore(tmp_path / "s.json")
    background = _tracker(catalog)
    _drive_into_a(background, make_fix)
    ContinuityBridge(background, store).persist()

    foreground = _tracker(catalog)
    result = ContinuityBridge(foreground, store).sync()
    assert result is SyncResult.ADOPTED
    assert foreground.state.current_sector_id == "a"
    assert foreground.state.speed_readings == background.state.speed_readings


def test_sync_updates_same_sector(catalog, make_fix, tmp_path):
    store = JsonStateStore(tmp_path / "s.json")
    tracker = _tracker(catalog)
    _drive_into_a(tracker, make_fix)
    bridge = ContinuityBridge(tracker, store)
    bridge.persist()

    tracker.state.speed_readings = [1.0]
    assert bridge.sync() is SyncResult.UPDATED
    assert tracker.state.speed_readings == [100.0, 110.0, 120.0]
    assert tracker.state.current_average_speed == pytest.approx(110.0)


def test_sync_clears_when_persisted_state_is_idle(catalog, make_fix, tmp_path):
    store = JsonStateStore(tmp_path / "s.json")
    store.save(ContinuitySnapshot())
    tracker = _tracker(catalog)
    _drive_into_a(tracker, make_fix)
    assert ContinuityBridge(tracker, store).sync() is SyncResult.CLEARED
    assert not tracker.state.in_sector


def test_sync_without_snapshot_is_unchanged(catalog, tmp_path):
    bridge = ContinuityBridge(_tracker(catalog), JsonStateStore(tmp_path / "missing.json"))
    assert bridge.sync() is SyncResult.UNCHANGED
