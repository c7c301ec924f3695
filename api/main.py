"""
FastAPI application entry point.

On startup the database schema is initialised.

Endpoints (v1):
  POST   /predict                 arrival-time prediction for a chain of routes
  POST   /log                     record one completed trip
  GET    /analytics               per-route wait / travel summary
  GET    /benchmark               per-route travel-time volatility
  GET    /day-stats               logged trips per day of week
  GET    /logger-session          in-progress logger session (or null)
  POST   /logger-session          create / update the in-progress session
  DELETE /logger-session          discard the in-progress session
  POST   /log-timestamp           stamp one event on the in-progress session
  POST   /ingest/commute-data     reload routes / schedules / logs from CSV
  GET    /health

Caller identity comes from the X-User-Id header or the user_id query
parameter and is passed explicitly to every lookup.
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader
from sqlalchemy import func
from sqlalchemy.orm import Session

from analytics.stats import benchmark, day_stats, route_analytics
from api.schemas import (
    BenchmarkRow,
    DayStats,
    HealthResponse,
    IngestResponse,
    LoggerSessionBody,
    LoggerSessionResult,
    LogRequest,
    LogResponse,
    PredictRequest,
    PredictResponse,
    RouteAnalytics,
    TimestampRequest,
    TimestampResponse,
)
from config import API_HOST, API_PORT, CORS_ORIGINS, DATA_DIR, INGEST_API_KEY
from db.models import LoggerSession, Route, RouteSchedule, TripLog
from db.session import get_session, init_db
from ingestion.commute_csv import import_commute_csvs
from prediction.chainer import chain_predict
from prediction.errors import ValidationError
from prediction.sources import RequestContext, SqlCommuteDataSource
from prediction.timeutils import parse_clock
from trip_logger.session import IN_PROGRESS, LoggerSessionState, SessionOrderError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_ingest_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _require_ingest_key(key: str | None = Security(_ingest_key_header)) -> None:
    """
    Optional API-key guard for the ingest endpoint.

    If INGEST_API_KEY is not set the endpoint is open (local dev / testing).
    If it is set, the request must include the matching X-API-Key header.
    """
    if not INGEST_API_KEY:
        return  # no key configured → open
    if key != INGEST_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid or missing X-API-Key header.")


def _request_context(
    user_id: str | None = Query(None, description="Scope lookups to this user"),
    x_user_id: str | None = Header(None),
) -> RequestContext:
    return RequestContext(user_id=user_id or x_user_id)


def _require_user(context: RequestContext = Depends(_request_context)) -> str:
    if not context.user_id:
        raise HTTPException(status_code=400, detail="User ID required (add ?user_id=YOUR_ID to URL)")
    return context.user_id


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database initialised.")
    yield


app = FastAPI(
    title="Commute Arrival Predictor",
    description="Best / safe / worst arrival estimates for multi-leg commutes from logged trips.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)


@app.get("/health", response_model=HealthResponse)
async def health(session: Session = Depends(get_session)) -> HealthResponse:
    """Liveness check with record counts so operators can see whether data is loaded."""
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "routes": session.query(func.count(Route.id)).scalar() or 0,
        "trip_logs": session.query(func.count(TripLog.id)).scalar() or 0,
        "schedules": session.query(func.count(RouteSchedule.id)).scalar() or 0,
        "last_logged_date": session.query(func.max(TripLog.date)).scalar(),
    }


@app.post("/predict", response_model=PredictResponse)
async def predict(
    body: PredictRequest,
    context: RequestContext = Depends(_request_context),
    session: Session = Depends(get_session),
) -> PredictResponse:
    """
    Predict best / safe / worst arrival for the given chain of routes.

    Each leg is estimated from its logged trips and the schedule for the
    request date's day type, starting from the previous leg's arrival.
    """
    try:
        return chain_predict(
            body.route_ids,
            body.start_time,
            SqlCommuteDataSource(session),
            travel_date=body.date,
            context=context,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@app.post("/log", response_model=LogResponse, status_code=201)
async def record_log(
    body: LogRequest,
    context: RequestContext = Depends(_request_context),
    session: Session = Depends(get_session),
) -> LogResponse:
    """Record one completed trip."""
    stamps = body.timestamps
    try:
        datetime.strptime(body.date, "%Y-%m-%d")
        for value in (stamps.arrived, stamps.boarded, stamps.departed, stamps.dropped, stamps.next_stop):
            if value:
                parse_clock(value)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid date/time field: {exc}")

    log = TripLog(
        route_id=body.route_id,
        user_id=context.user_id,
        date=body.date,
        timestamp_arrived_pickup=stamps.arrived,
        timestamp_boarded=stamps.boarded,
        timestamp_departed=stamps.departed,
        timestamp_arrived_dropoff=stamps.dropped,
        timestamp_reached_next=stamps.next_stop,
        missed_cycles=body.missed_cycles,
    )
    session.add(log)
    session.commit()
    return {"id": log.id, "route_id": log.route_id, "date": log.date}


@app.get("/analytics", response_model=list[RouteAnalytics])
async def get_analytics(
    context: RequestContext = Depends(_request_context),
    session: Session = Depends(get_session),
) -> list[RouteAnalytics]:
    return route_analytics(session, context.user_id)


@app.get("/benchmark", response_model=list[BenchmarkRow])
async def get_benchmark(
    context: RequestContext = Depends(_request_context),
    session: Session = Depends(get_session),
) -> list[BenchmarkRow]:
    """Travel-time volatility per route and the accuracy band it implies."""
    return benchmark(session, context.user_id)


@app.get("/day-stats", response_model=DayStats)
async def get_day_stats(
    context: RequestContext = Depends(_request_context),
    session: Session = Depends(get_session),
) -> DayStats:
    return day_stats(session, context.user_id)


# ---------------------------------------------------------------------------
# Logger session persistence
# ---------------------------------------------------------------------------

def _session_result(row: LoggerSession) -> dict:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "route_id": row.route_id,
        "timestamps": json.loads(row.timestamps or "{}"),
        "missed_cycles": row.missed_cycles or 0,
        "status": row.status,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


def _active_session(session: Session, user_id: str | None) -> LoggerSession | None:
    query = (
        session.query(LoggerSession)
        .filter(LoggerSession.status == IN_PROGRESS)
        .order_by(LoggerSession.created_at.desc())
    )
    if user_id:
        query = query.filter(LoggerSession.user_id == user_id)
    return query.first()


def _upsert_session(
    session: Session,
    user_id: str,
    existing: LoggerSession | None,
    state: LoggerSessionState,
) -> tuple[LoggerSession, bool]:
    now = datetime.utcnow().isoformat()
    created = existing is None
    row = existing or LoggerSession(user_id=user_id, status=IN_PROGRESS, created_at=now)
    row.route_id = state.route_id
    row.timestamps = json.dumps(state.timestamps)
    row.missed_cycles = state.missed_cycles
    row.updated_at = now
    if created:
        session.add(row)
    session.commit()
    return row, created


@app.get("/logger-session", response_model=LoggerSessionResult | None)
async def get_logger_session(
    context: RequestContext = Depends(_request_context),
    session: Session = Depends(get_session),
) -> LoggerSessionResult | None:
    row = _active_session(session, context.user_id)
    return _session_result(row) if row is not None else None


@app.post("/logger-session", response_model=LoggerSessionResult)
async def save_logger_session(
    body: LoggerSessionBody,
    response: Response,
    user_id: str = Depends(_require_user),
    session: Session = Depends(get_session),
) -> LoggerSessionResult:
    """Create the user's in-progress session, or replace its contents."""
    state = LoggerSessionState(
        route_id=body.route_id,
        timestamps=body.timestamps,
        missed_cycles=body.missed_cycles,
    )
    row, created = _upsert_session(session, user_id, _active_session(session, user_id), state)
    response.status_code = 201 if created else 200
    return _session_result(row)


@app.delete("/logger-session")
async def clear_logger_session(
    user_id: str = Depends(_require_user),
    session: Session = Depends(get_session),
) -> dict:
    session.query(LoggerSession).filter(
        LoggerSession.user_id == user_id,
        LoggerSession.status == IN_PROGRESS,
    ).delete()
    session.commit()
    return {"success": True}


@app.post("/log-timestamp", response_model=TimestampResponse)
async def log_timestamp(
    body: TimestampRequest,
    response: Response,
    user_id: str = Depends(_require_user),
    session: Session = Depends(get_session),
) -> TimestampResponse:
    """
    Stamp a single event (arrived, boarded, departed, dropped, next_stop).

    Meant for phone automations that fire one HTTP call per event.  A new
    session can only be opened by an "arrived" stamp.
    """
    try:
        parse_clock(body.time)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    existing = _active_session(session, user_id)
    if existing is not None:
        state = LoggerSessionState(
            route_id=existing.route_id,
            timestamps=json.loads(existing.timestamps or "{}"),
            missed_cycles=existing.missed_cycles or 0,
        )
    else:
        state = LoggerSessionState(missed_cycles=body.missed_cycles or 0)

    try:
        state = state.record(body.timestamp_type, body.time, route_id=body.route_id)
    except SessionOrderError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if body.missed_cycles is not None:
        state = state.adjust_cycles(body.missed_cycles - state.missed_cycles)

    row, created = _upsert_session(session, user_id, existing, state)
    response.status_code = 201 if created else 200
    return {"success": True, "session": _session_result(row)}


# ---------------------------------------------------------------------------
# Ingest
# ---------------------------------------------------------------------------

@app.post("/ingest/commute-data", response_model=IngestResponse)
async def trigger_commute_import(
    directory: str = Query(str(DATA_DIR / "import"), description="Directory holding the CSV export"),
    session: Session = Depends(get_session),
    _: None = Depends(_require_ingest_key),
) -> IngestResponse:
    """
    Replace routes, schedules and trip logs with a CSV export.

    Expects routes.csv (required), route_schedules.csv and trip_logs.csv.
    """
    try:
        counts = import_commute_csvs(directory, session)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {
        "status": "ok",
        "counts": counts,
        "message": (
            f"Imported {counts['routes']} routes, {counts['route_schedules']} schedules "
            f"and {counts['trip_logs']} trip logs."
        ),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=API_HOST, port=API_PORT)
