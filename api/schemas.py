from __future__ import annotations
from typing import Literal
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# POST /predict
# ---------------------------------------------------------------------------

class PredictRequest(BaseModel):
    route_ids: list[str] = Field(..., description="Route ids in itinerary order")
    start_time: str | None = Field(None, description="Departure time as HH:MM or HH:MM:SS")
    date: str | None = Field(None, description="Travel date as YYYY-MM-DD. Defaults to today.")


class ScenarioClocks(BaseModel):
    best: str
    safe: str
    worst: str


class LegTiming(BaseModel):
    wait: int
    travel: int


class LegTimelines(BaseModel):
    best: LegTiming
    safe: LegTiming
    worst: LegTiming


class LegBreakdown(BaseModel):
    route_id: str
    name: str
    mode: str
    origin: str
    destination: str
    source: Literal["historical", "schedule", "default"]
    degraded: bool
    interval: int
    timelines: LegTimelines
    arrival_time: ScenarioClocks


class PredictResponse(BaseModel):
    start_time: str
    date: str
    day_type: Literal["Weekday", "Saturday", "Sunday/Holiday"]
    arrivals: ScenarioClocks
    breakdown: list[LegBreakdown]


# ---------------------------------------------------------------------------
# POST /log
# ---------------------------------------------------------------------------

class LogTimestamps(BaseModel):
    arrived: str | None = None
    boarded: str | None = None
    departed: str | None = None
    dropped: str | None = None
    next_stop: str | None = None


class LogRequest(BaseModel):
    route_id: str
    date: str
    timestamps: LogTimestamps
    missed_cycles: int = Field(0, ge=0)


class LogResponse(BaseModel):
    id: int
    route_id: str
    date: str


# ---------------------------------------------------------------------------
# GET /analytics, /benchmark, /day-stats
# ---------------------------------------------------------------------------

class RouteAnalytics(BaseModel):
    route_id: str
    route_name: str
    mode: str
    origin: str
    destination: str
    total_trips: int
    avg_wait: int
    avg_travel: int
    avg_total: int
    min_wait: int
    max_wait: int
    min_travel: int
    max_travel: int
    missed_cycles_avg: int


class BenchmarkRow(BaseModel):
    route: str
    mode: str | None
    total_trips: int
    avg_min: int
    volatility_min: int
    prediction_accuracy: str


class DayStats(BaseModel):
    labels: list[str]
    data: list[int]


# ---------------------------------------------------------------------------
# /logger-session, /log-timestamp
# ---------------------------------------------------------------------------

class LoggerSessionBody(BaseModel):
    route_id: str | None = None
    timestamps: dict[str, str] = Field(default_factory=dict)
    missed_cycles: int = Field(0, ge=0)


class LoggerSessionResult(BaseModel):
    id: int
    user_id: str
    route_id: str | None
    timestamps: dict[str, str]
    missed_cycles: int
    status: str
    created_at: str | None
    updated_at: str | None


class TimestampRequest(BaseModel):
    route_id: str
    timestamp_type: str
    time: str
    missed_cycles: int | None = Field(None, ge=0)


class TimestampResponse(BaseModel):
    success: bool
    session: LoggerSessionResult


# ---------------------------------------------------------------------------
# GET /health, POST /ingest/*
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: Literal["ok"]
    timestamp: str
    routes: int
    trip_logs: int
    schedules: int
    last_logged_date: str | None


class IngestResponse(BaseModel):
    status: Literal["ok"]
    counts: dict[str, int]
    message: str
