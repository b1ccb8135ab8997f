"""Settings parsing and environment configuration."""

from __future__ import annotations

import json

from sector_tracker.config import (
    AppConfig,
    NotificationSettings,
    load_settings,
    parse_warning_distances,
)


def test_parse_warning_distances_sorts_and_dedups():
    assert parse_warning_distances([3000, 1000, "2000", 1000]) == [1000.0, 2000.0, 3000.0]


def test_parse_warning_distances_falls_back():
    assert parse_warning_distances([]) == [1000.0]
    assert parse_warning_distances("1000") == [1000.0]
    assert parse_warning_distances([-5, "x", None, True]) == [1000.0]


def test_settings_from_dict_tolerates_bad_values():
    settings = NotificationSettings.from_dict(
        {"notificationsEnabled": "yes", "earlyWarningEnabled": False, "warningDistances": [500]}
    )
    assert settings.notifications_enabled is True
    assert settings.early_warning_enabled is False
    assert settings.warning_distances == [500.0]
    assert settings.max_warning_distance == 500.0


def test_load_settings_missing_or_corrupt(tmp_path, caplog):
    assert load_settings(tmp_path / "missing.json") == NotificationSettings()
    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")
    assert load_settings(bad) == NotificationSettings()
    assert "Could not read settings" in caplog.text


def test_load_settings_from_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"vibrationEnabled": False}), encoding="utf-8")
    settings = load_settings(path)
    assert settings.vibration_enabled is False
    assert settings.warning_distances == [1000.0, 2000.0, 3000.0]


def test_app_config_from_env(monkeypatch):
    monkeypatch.setenv("SECTOR_TRACKER_ROUTING_TOKEN", "tok")
    monkeypatch.setenv("SECTOR_TRACKER_DEVICE_ID", "dev-9")
    monkeypatch.delenv("SECTOR_TRACKER_RECORDER_URL", raising=False)
    cfg = AppConfig.from_env()
    assert cfg.routing_token == "tok"
    assert cfg.device_id == "dev-9"
    assert cfg.recorder_url == ""


def test_settings_normalise_distances_on_construction():
    assert NotificationSettings(warning_distances=[]).warning_distances == [1000.0]
    settings = NotificationSettings(warning_distances=[2000, 500, 500])
    assert settings.warning_distances == [500.0, 2000.0]
    assert settings.max_warning_distance == 2000.0
