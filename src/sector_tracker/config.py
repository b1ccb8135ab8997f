"""Runtime configuration: tracker tunables, user notification settings, environment.

Entry points call :func:`dotenv.load_dotenv` before :meth:`AppConfig.from_env`
so values from a project ``.env`` file are visible here.
"""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path

_logger = logging.getLogger(__name__)

DEFAULT_WARNING_DISTANCES: tuple[float, ...] = (1000.0, 2000.0, 3000.0)
FALLBACK_WARNING_DISTANCE = 1000.0


@dataclass(frozen=True)
class TrackerConfig:
    """Tunables of the sector tracking state machine.

    Distances in metres, speeds in km/h, times in milliseconds.
    """

    debounce_ms: int = 500
    entry_threshold_m: float = 80.0
    exit_threshold_m: float = 120.0
    entry_confirmations: int = 2
    exit_confirmations: int = 3

    recent_window: int = 10
    """Number of most recent speed readings in the short-window average."""

    session_weight: float = 0.7
    """Weight of the full-session average in the predicted average (rest goes to the recent average)."""

    progress_thresholds: tuple[float, ...] = (0.33, 0.66)
    min_remaining_m: float = 50.0
    recovery_band_kmh: float = 20.0
    history_size: int = 50

    speed_margin_kmh: float = 5.0
    """Instantaneous speed must exceed the limit by more than this to raise a speed violation."""

    speed_violation_cooldown_ms: int = 30_000
    average_violation_cooldown_ms: int = 60_000
    warning_cooldown_ms: int = 120_000
    warning_clear_margin_m: float = 500.0


@dataclass
class NotificationSettings:
    """User preferences supplied by the settings collaborator (read-only to the tracker)."""

    notifications_enabled: bool = True
    vibration_enabled: bool = True
    sound_enabled: bool = True
    early_warning_enabled: bool = True
    warning_distances: list[float] = field(
        default_factory=lambda: list(DEFAULT_WARNING_DISTANCES)
    )

    def __post_init__(self) -> None:
        self.warning_distances = parse_warning_distances(self.warning_distances)

    @property
    def max_warning_distance(self) -> float:
        return max(self.warning_distances)

    @classmethod
    def from_dict(cls, data: dict) -> NotificationSettings:
        """Build settings from a stored dict, tolerating missing or malformed values."""
        if not isinstance(data, dict):
            return cls()
        defaults = cls()
        return cls(
            notifications_enabled=_as_bool(
                data.get("notificationsEnabled"), defaults.notifications_enabled
            ),
            vibration_enabled=_as_bool(data.get("vibrationEnabled"), defaults.vibration_enabled),
            sound_enabled=_as_bool(data.get("soundEnabled"), defaults.sound_enabled),
            early_warning_enabled=_as_bool(
                data.get("earlyWarningEnabled"), defaults.early_warning_enabled
            ),
            warning_distances=parse_warning_distances(
                data.get("warningDistances", list(DEFAULT_WARNING_DISTANCES))
            ),
        )


def parse_warning_distances(raw) -> list[float]:
    """Return sorted, de-duplicated positive distances.

    An empty, non-list or entirely invalid value falls back to a single
    :data:`FALLBACK_WARNING_DISTANCE`.
    """
    if not isinstance(raw, (list, tuple)):
        return [FALLBACK_WARNING_DISTANCE]
    distances: set[float] = set()
    for item in raw:
        if isinstance(item, bool):
            continue
        try:
            d = float(item)
        except (TypeError, ValueError):
            continue
        if math.isfinite(d) and d > 0:
            distances.add(d)
    return sorted(distances) or [FALLBACK_WARNING_DISTANCE]


def load_settings(path: str | Path | None) -> NotificationSettings:
    """Load :class:`NotificationSettings` from a JSON file; defaults on any problem."""
    if not path:
        return NotificationSettings()
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return NotificationSettings()
    except (OSError, json.JSONDecodeError) as exc:
        _logger.warning("Could not read settings from %s: %s", path, exc)
        return NotificationSettings()
    return NotificationSettings.from_dict(data)


@dataclass(frozen=True)
class AppConfig:
    """Deployment configuration read from the environment."""

    routing_token: str = ""
    routing_url: str = "https://api.mapbox.com/directions/v5/mapbox"
    recorder_url: str = ""
    device_id: str = ""
    state_path: str = "tracker_state.json"
    settings_path: str = ""
    db_path: str = "violations.db"

    @classmethod
    def from_env(cls) -> AppConfig:
        defaults = cls()
        env = os.environ
        return cls(
            routing_token=env.get("SECTOR_TRACKER_ROUTING_TOKEN", defaults.routing_token),
            routing_url=env.get("SECTOR_TRACKER_ROUTING_URL", defaults.routing_url),
            recorder_url=env.get("SECTOR_TRACKER_RECORDER_URL", defaults.recorder_url),
            device_id=env.get("SECTOR_TRACKER_DEVICE_ID", defaults.device_id),
            state_path=env.get("SECTOR_TRACKER_STATE_PATH", defaults.state_path),
            settings_path=env.get("SECTOR_TRACKER_SETTINGS_PATH", defaults.settings_path),
            db_path=env.get("SECTOR_TRACKER_DB", defaults.db_path),
        )


def _as_bool(value, default: bool) -> bool:
    return value if isinstance(value, bool) else default
