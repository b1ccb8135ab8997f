"""Tracking state, history records and emitted events."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import ClassVar

from sector_tracker.sectors.models import Sector


@dataclass
class TrackingState:
    """Mutable state of the sector tracker.

    Owned and mutated only by :class:`~sector_tracker.tracking.state_machine.SectorTracker`;
    everyone else reads :class:`TrackingSnapshot` copies.

    ``sector is not None`` if and only if ``entry_time_ms is not None``.
    """

    sector: Sector | None = None
    """Sector the vehicle is confirmed inside (captured at entry)."""

    entry_time_ms: int | None = None
    speed_readings: list[float] = field(default_factory=list)
    current_average_speed: float = 0.0
    predicted_average_speed: float = 0.0
    will_exceed_limit: bool = False
    progress: float = 0.0
    total_distance_m: float = 0.0
    distance_traveled_m: float = 0.0
    recommended_speed_kmh: int | None = None

    entry_candidate_id: str | None = None
    """Sector matched by the pending entry confirmations."""

    entry_confirmation_count: int = 0
    exit_confirmation_count: int = 0
    last_progress_threshold_notified: float = 0.0
    last_check_time_ms: int | None = None

    @property
    def current_sector_id(self) -> str | None:
        return self.sector.id if self.sector is not None else None

    @property
    def in_sector(self) -> bool:
        return self.sector is not None

    def clear_session(self) -> None:
        """Reset every in-sector field to its idle default."""
        self.sector = None
        self.entry_time_ms = None
        self.speed_readings = []
        self.current_average_speed = 0.0
        self.predicted_average_speed = 0.0
        self.will_exceed_limit = False
        self.progress = 0.0
        self.total_distance_m = 0.0
        self.distance_traveled_m = 0.0
        self.recommended_speed_kmh = None
        self.entry_candidate_id = None
        self.entry_confirmation_count = 0
        self.exit_confirmation_count = 0
        self.last_progress_threshold_notified = 0.0


@dataclass(frozen=True)
class TrackingSnapshot:
    """Read-only copy of :class:`TrackingState` handed to UI and other readers."""

    current_sector_id: str | None
    sector_name: str | None
    speed_limit: float | None
    entry_time_ms: int | None
    speed_readings: tuple[float, ...]
    current_average_speed: float
    predicted_average_speed: float
    will_exceed_limit: bool
    progress: float
    total_distance_m: float
    distance_traveled_m: float
    recommended_speed_kmh: int | None
    entry_confirmation_count: int
    exit_confirmation_count: int
    last_progress_threshold_notified: float
    last_check_time_ms: int | None

    @property
    def in_sector(self) -> bool:
        return self.current_sector_id is not None

    @property
    def needs_recovery(self) -> bool:
        """Average is over the limit but no recommended speed can bring it back.

        Distinguishes "cannot get back under the limit" from "no
        recommendation needed", which share ``recommended_speed_kmh is None``.
        """
        return (
            self.speed_limit is not None
            and self.current_average_speed > self.speed_limit
            and self.recommended_speed_kmh is None
        )

    @classmethod
    def of(cls, state: TrackingState) -> TrackingSnapshot:
        sector = state.sector
        return cls(
            current_sector_id=state.current_sector_id,
            sector_name=sector.name if sector else None,
            speed_limit=sector.speed_limit if sector else None,
            entry_time_ms=state.entry_time_ms,
            speed_readings=tuple(state.speed_readings),
            current_average_speed=state.current_average_speed,
            predicted_average_speed=state.predicted_average_speed,
            will_exceed_limit=state.will_exceed_limit,
            progress=state.progress,
            total_distance_m=state.total_distance_m,
            distance_traveled_m=state.distance_traveled_m,
            recommended_speed_kmh=state.recommended_speed_kmh,
            entry_confirmation_count=state.entry_confirmation_count,
            exit_confirmation_count=state.exit_confirmation_count,
            last_progress_threshold_notified=state.last_progress_threshold_notified,
            last_check_time_ms=state.last_check_time_ms,
        )


@dataclass(frozen=True)
class SectorHistoryEntry:
    """One completed pass through a sector, created once at confirmed exit."""

    sector_id: str
    sector_name: str
    timestamp_ms: int
    average_speed: float
    speed_limit: float
    exceeded: bool
    duration_ms: int

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrackingEvent:
    """Base class of tagged events emitted by the tracker."""

    type: ClassVar[str] = "event"

    sector_id: str

    def to_dict(self) -> dict:
        """Tagged JSON-serializable payload."""
        return {"type": self.type, **dataclasses.asdict(self)}


@dataclass(frozen=True)
class SectorEntered(TrackingEvent):
    type: ClassVar[str] = "sector-entered"

    sector_name: str
    speed_limit: float
    current_speed: float


@dataclass(frozen=True)
class SectorProgress(TrackingEvent):
    type: ClassVar[str] = "sector-progress"

    threshold_crossed: float
    average_speed: float
    exceeding: bool
    recommended_speed: int | None
    sector_name: str = ""
    speed_limit: float = 0.0


@dataclass(frozen=True)
class SectorExited(TrackingEvent):
    type: ClassVar[str] = "sector-exited"

    sector_name: str
    average_speed: float
    exceeded: bool
    entry: SectorHistoryEntry | None = field(default=None, compare=False)
    last_latitude: float | None = None
    last_longitude: float | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "sector_id": self.sector_id,
            "sector_name": self.sector_name,
            "average_speed": self.average_speed,
            "exceeded": self.exceeded,
        }


@dataclass(frozen=True)
class SpeedViolation(TrackingEvent):
    type: ClassVar[str] = "speed-violation"

    current_speed: float
    average_speed: float
    speed_limit: float


@dataclass(frozen=True)
class AverageViolation(TrackingEvent):
    type: ClassVar[str] = "average-violation"

    average_speed: float
    recommended_speed: int | None
    speed_limit: float


@dataclass(frozen=True)
class SectorApproaching(TrackingEvent):
    type: ClassVar[str] = "sector-approaching"

    sector_name: str
    speed_limit: float
    distance: float
