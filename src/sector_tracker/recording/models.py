"""Violation record schema shared by the recorder and the receiving API."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from sector_tracker.geo.models import GeoPoint
from sector_tracker.tracking.models import SectorHistoryEntry

ViolationType = Literal["speeding", "normal"]


class RecordLocation(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class ViolationRecord(BaseModel):
    """One completed sector pass as sent to remote storage."""

    device_id: str = Field(min_length=1)
    sector_id: str = Field(min_length=1)
    sector_name: str = Field(min_length=1)
    speed_limit: float = Field(gt=0)
    current_speed: float = Field(ge=0)
    """Average speed over the sector, km/h."""

    violation_type: ViolationType
    location: RecordLocation
    timestamp: datetime

    @classmethod
    def from_history(
        cls,
        entry: SectorHistoryEntry,
        position: GeoPoint,
        device_id: str,
    ) -> ViolationRecord:
        return cls(
            device_id=device_id,
            sector_id=entry.sector_id,
            sector_name=entry.sector_name,
            speed_limit=entry.speed_limit,
            current_speed=entry.average_speed,
            violation_type="speeding" if entry.exceeded else "normal",
            location=RecordLocation(latitude=position.latitude, longitude=position.longitude),
            timestamp=datetime.fromtimestamp(entry.timestamp_ms / 1000, tz=timezone.utc),
        )
