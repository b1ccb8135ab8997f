"""Continuity across process suspension.

A host may run one tracker in the foreground and another in a platform
background task.  The :class:`ContinuityBridge` persists the essential
tracking state when a context may be suspended and reconciles it when a
context resumes.  The persisted snapshot is the source of truth: whichever
context wrote last saw the most recent fixes.
"""

from __future__ import annotations

import enum
import json
import logging
import math
import os
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from sector_tracker.tracking.estimation import mean
from sector_tracker.tracking.models import TrackingState
from sector_tracker.tracking.state_machine import SectorTracker

_logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class ContinuitySnapshot:
    """Serializable subset of :class:`TrackingState`.

    ``current_sector_id is None`` means the writer was outside every sector.
    """

    current_sector_id: str | None = None
    entry_time_ms: int | None = None
    speed_readings: tuple[float, ...] = ()
    recommended_speed_kmh: int | None = None
    current_average_speed: float = 0.0
    predicted_average_speed: float = 0.0
    progress: float = 0.0
    distance_traveled_m: float = 0.0
    last_progress_threshold_notified: float = 0.0
    saved_at_ms: int = 0
    schema_version: int = field(default=SCHEMA_VERSION)

    def to_dict(self) -> dict:
        return {
            "schema_version": self.schema_version,
            "current_sector_id": self.current_sector_id,
            "entry_time_ms": self.entry_time_ms,
            "speed_readings": list(self.speed_readings),
            "recommended_speed_kmh": self.recommended_speed_kmh,
            "current_average_speed": self.current_average_speed,
            "predicted_average_speed": self.predicted_average_speed,
            "progress": self.progress,
            "distance_traveled_m": self.distance_traveled_m,
            "last_progress_threshold_notified": self.last_progress_threshold_notified,
            "saved_at_ms": self.saved_at_ms,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> ContinuitySnapshot:
        """Parse a persisted snapshot.

        Raises:
            ValueError: On an unknown schema version or malformed fields.
        """
        if not isinstance(raw, dict):
            raise ValueError("Snapshot must be a JSON object")
        if raw.get("schema_version") != SCHEMA_VERSION:
            raise ValueError(f"Unsupported snapshot schema: {raw.get('schema_version')!r}")
        try:
            sector_id = raw.get("current_sector_id")
            entry_time = raw.get("entry_time_ms")
            recommended = raw.get("recommended_speed_kmh")
            readings = tuple(float(v) for v in raw.get("speed_readings") or ())
            if not all(math.isfinite(v) for v in readings):
                raise ValueError("non-finite speed reading")
            snapshot = cls(
                current_sector_id=str(sector_id) if sector_id is not None else None,
                entry_time_ms=int(entry_time) if entry_time is not None else None,
                speed_readings=readings,
                recommended_speed_kmh=int(recommended) if recommended is not None else None,
                current_average_speed=float(raw.get("current_average_speed", 0.0)),
                predicted_average_speed=float(raw.get("predicted_average_speed", 0.0)),
                progress=float(raw.get("progress", 0.0)),
                distance_traveled_m=float(raw.get("distance_traveled_m", 0.0)),
                last_progress_threshold_notified=float(
                    raw.get("last_progress_threshold_notified", 0.0)
                ),
                saved_at_ms=int(raw.get("saved_at_ms", 0)),
            )
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Malformed snapshot: {exc}") from exc
        if (snapshot.current_sector_id is None) != (snapshot.entry_time_ms is None):
            raise ValueError("Snapshot sector id and entry time must be set together")
        return snapshot


class JsonStateStore:
    """Persists a :class:`ContinuitySnapshot` as a JSON file.

    Writes go to a temporary file in the same directory and are moved into
    place with :func:`os.replace`, so a reader never sees a partial file.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def save(self, snapshot: ContinuitySnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".snapshot-", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(snapshot.to_dict(), fh)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def load(self) -> ContinuitySnapshot | None:
        """Return the persisted snapshot, or None if absent or unreadable."""
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            _logger.warning("Ignoring unreadable tracker snapshot %s: %s", self.path, exc)
            return None
        try:
            return ContinuitySnapshot.from_dict(raw)
        except ValueError as exc:
            _logger.warning("Ignoring invalid tracker snapshot %s: %s", self.path, exc)
            return None

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class SyncResult(enum.Enum):
    """What :meth:`ContinuityBridge.sync` did to the in-memory state."""

    UNCHANGED = "unchanged"
    ADOPTED = "adopted"
    """In-memory state replaced by the persisted sector session."""

    UPDATED = "updated"
    """Same sector; speed data refreshed from the snapshot."""

    CLEARED = "cleared"
    """Persisted state is outside every sector; in-memory session dropped."""


class ContinuityBridge:
    """Persists and reconciles a :class:`SectorTracker`'s state.

    Parameters
    ----------
    tracker:
        The tracker whose state is persisted and restored.
    store:
        A :class:`JsonStateStore` (or any object with ``save``/``load``).
    _clock_ms:
        Epoch milliseconds, injectable for tests.
    """

    def __init__(
        self,
        tracker: SectorTracker,
        store: JsonStateStore,
        _clock_ms: Callable[[], int] = lambda: int(time.time() * 1000),
    ) -> None:
        self._tracker = tracker
        self._store = store
        self._clock_ms = _clock_ms

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def snapshot(self) -> ContinuitySnapshot:
        """Capture the tracker's essential state."""
        state = self._tracker.state
        return ContinuitySnapshot(
            current_sector_id=state.current_sector_id,
            entry_time_ms=state.entry_time_ms,
            speed_readings=tuple(state.speed_readings),
            recommended_speed_kmh=state.recommended_speed_kmh,
            current_average_speed=state.current_average_speed,
            predicted_average_speed=state.predicted_average_speed,
            progress=state.progress,
            distance_traveled_m=state.distance_traveled_m,
            last_progress_threshold_notified=state.last_progress_threshold_notified,
            saved_at_ms=self._clock_ms(),
        )

    def restore(self, serialized: ContinuitySnapshot | dict) -> TrackingState:
        """Build a :class:`TrackingState` from a snapshot.

        A snapshot naming a sector missing from the catalog restores to idle.

        Raises:
            ValueError: If a dict snapshot is malformed.
        """
        snapshot = (
            serialized
            if isinstance(serialized, ContinuitySnapshot)
            else ContinuitySnapshot.from_dict(serialized)
        )
        state = TrackingState(last_check_time_ms=self._tracker.state.last_check_time_ms)
        if snapshot.current_sector_id is None:
            return state

        sector = self._tracker.catalog.get(snapshot.current_sector_id)
        if sector is None:
            _logger.warning(
                "Snapshot sector %s is not in the catalog; restoring idle",
                snapshot.current_sector_id,
            )
            return state

        readings = list(snapshot.speed_readings)
        average = mean(readings) if readings else snapshot.current_average_speed
        state.sector = sector
        state.entry_time_ms = snapshot.entry_time_ms
        state.speed_readings = readings
        state.current_average_speed = average
        state.predicted_average_speed = snapshot.predicted_average_speed or average
        state.will_exceed_limit = state.predicted_average_speed > sector.speed_limit
        state.recommended_speed_kmh = snapshot.recommended_speed_kmh
        state.total_distance_m = sector.total_distance_m()
        state.distance_traveled_m = min(snapshot.distance_traveled_m, state.total_distance_m)
        state.progress = min(1.0, max(0.0, snapshot.progress))
        state.last_progress_threshold_notified = snapshot.last_progress_threshold_notified
        return state

    def persist(self) -> ContinuitySnapshot:
        """Write the current state to the store (call before a possible suspension)."""
        snapshot = self.snapshot()
        self._store.save(snapshot)
        _logger.debug("Persisted tracker state (sector=%s)", snapshot.current_sector_id)
        return snapshot

    def sync(self) -> SyncResult:
        """Reconcile in-memory state with the persisted snapshot (call on resume)."""
        persisted = self._store.load()
        state = self._tracker.state
        persisted_id = persisted.current_sector_id if persisted is not None else None

        if persisted_id is None:
            if state.sector is None:
                return SyncResult.UNCHANGED
            _logger.info("Persisted state has no sector; clearing %s", state.current_sector_id)
            state.clear_session()
            return SyncResult.CLEARED

        if state.current_sector_id != persisted_id:
            restored = self.restore(persisted)
            if restored.sector is None:
                return SyncResult.UNCHANGED
            self._tracker.replace_state(restored)
            _logger.info("Adopted persisted sector session %s", persisted_id)
            return SyncResult.ADOPTED

        restored = self.restore(persisted)
        state.speed_readings = restored.speed_readings
        state.current_average_speed = restored.current_average_speed
        state.predicted_average_speed = restored.predicted_average_speed
        state.will_exceed_limit = restored.will_exceed_limit
        state.recommended_speed_kmh = restored.recommended_speed_kmh
        return SyncResult.UPDATED
