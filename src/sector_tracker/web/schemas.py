"""Pydantic request/response schemas for the violations API."""

from __future__ import annotations

from pydantic import BaseModel

from sector_tracker.recording.models import RecordLocation, ViolationType


class HealthResponse(BaseModel):
    status: str
    version: str


class SaveResponse(BaseModel):
    success: bool
    id: int
    message: str


class StoredViolation(BaseModel):
    id: int
    device_id: str
    sector_id: str
    sector_name: str
    speed_limit: float
    current_speed: float
    violation_type: ViolationType
    location: RecordLocation
    timestamp: str


class HistoryResponse(BaseModel):
    violations: list[StoredViolation]
    total: int
    has_more: bool


class MostViolatedSector(BaseModel):
    id: str
    name: str
    violations: int


class BreakdownEntry(BaseModel):
    date: str
    violations: int
    normal: int


class PeriodSummary(BaseModel):
    period: str
    violations_trend: str
    improvement_percentage: float


class StatsResponse(BaseModel):
    total_violations: int
    speeding_violations: int
    normal_passages: int
    average_speed: float
    max_speed: float
    most_violated_sector: MostViolatedSector | None
    daily_breakdown: list[BreakdownEntry]
    period_summary: PeriodSummary


class EndpointInfo(BaseModel):
    lat: float
    lng: float
    name: str
    km: float | None = None


class SectorInfo(BaseModel):
    id: str
    name: str
    speed_limit: float
    active: bool
    has_route: bool
    start: EndpointInfo
    end: EndpointInfo
