"""FastAPI application receiving and querying recorded sector passes."""

from __future__ import annotations

import os
from datetime import datetime
from typing import Literal

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query

from sector_tracker import __version__
from sector_tracker.recording.models import ViolationRecord
from sector_tracker.recording.storage import ViolationStorage
from sector_tracker.sectors.catalog import SectorCatalog
from sector_tracker.web.schemas import (
    EndpointInfo,
    HealthResponse,
    HistoryResponse,
    SaveResponse,
    SectorInfo,
    StatsResponse,
    StoredViolation,
)

load_dotenv()  # must run before SECTOR_TRACKER_* variables are read

app = FastAPI(title="Sector Tracker", version=__version__)

_DEFAULT_DB = os.environ.get("SECTOR_TRACKER_DB", "violations.db")
_SECTORS_PATH = os.environ.get("SECTOR_TRACKER_SECTORS") or None


def _storage(db_path: str | None = None) -> ViolationStorage:
    return ViolationStorage(db_path or _DEFAULT_DB)


def _stored(row: dict) -> StoredViolation:
    return StoredViolation(
        id=row["id"],
        device_id=row["device_id"],
        sector_id=row["sector_id"],
        sector_name=row["sector_name"],
        speed_limit=row["speed_limit"],
        current_speed=row["current_speed"],
        violation_type=row["violation_type"],
        location={"latitude": row["latitude"], "longitude": row["longitude"]},
        timestamp=row["timestamp"],
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


@app.post("/api/violations", response_model=SaveResponse)
def save_violation(record: ViolationRecord, db: str | None = None) -> SaveResponse:
    """Store one recorded sector pass."""
    storage = _storage(db)
    try:
        violation_id = storage.save(record)
    finally:
        storage.close()
    return SaveResponse(success=True, id=violation_id, message="Violation saved successfully")


@app.get("/api/violations", response_model=HistoryResponse)
def violation_history(
    device_id: str = Query(min_length=1),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    violation_type: Literal["speeding", "normal", "all"] = "all",
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    db: str | None = None,
) -> HistoryResponse:
    """Recorded passes for a device, newest first."""
    storage = _storage(db)
    try:
        rows, total = storage.history(
            device_id,
            limit=limit,
            offset=offset,
            violation_type=violation_type,
            date_from=date_from,
            date_to=date_to,
        )
    finally:
        storage.close()
    return HistoryResponse(
        violations=[_stored(r) for r in rows],
        total=total,
        has_more=offset + len(rows) < total,
    )


@app.get("/api/violations/stats", response_model=StatsResponse)
def violation_stats(
    device_id: str = Query(min_length=1),
    period: Literal["daily", "weekly", "monthly"] = "daily",
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    db: str | None = None,
) -> StatsResponse:
    """Aggregate statistics of a device's recorded passes."""
    storage = _storage(db)
    try:
        stats = storage.stats(device_id, period=period, date_from=date_from, date_to=date_to)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    finally:
        storage.close()
    return StatsResponse(**stats)


@app.get("/api/sectors", response_model=list[SectorInfo])
def list_sectors() -> list[SectorInfo]:
    """Active sectors of the catalog; ``has_route`` is false until a road route is attached."""
    catalog = SectorCatalog.from_json(_SECTORS_PATH)
    return [
        SectorInfo(
            id=s.id,
            name=s.name,
            speed_limit=s.speed_limit,
            active=s.active,
            has_route=s.has_real_route(),
            start=EndpointInfo(lat=s.start.lat, lng=s.start.lng, name=s.start.name, km=s.start.km),
            end=EndpointInfo(lat=s.end.lat, lng=s.end.lng, name=s.end.name, km=s.end.km),
        )
        for s in catalog.active()
    ]
