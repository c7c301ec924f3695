"""
Aggregate statistics over logged trips.

  route_analytics      per-route wait / travel / missed-cycle summary
  benchmark            per-route travel-time volatility and the prediction
                       accuracy band it implies
  day_distribution     logged trips per day of week (Sun..Sat)

The pure summarise_* / accuracy_band helpers take plain values; the
session-level functions only gather rows for them.
"""

import logging
from collections import defaultdict
from datetime import date
from statistics import mean, pstdev
from typing import Any

from sqlalchemy.orm import Session

from config import FALLBACK_MODE
from db.models import Route, TripLog
from prediction.models import Mode, TripRecord
from prediction.timeutils import minutes_between, round_minutes

logger = logging.getLogger(__name__)

DAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

# (max volatility in minutes, accuracy percent), checked in order
_ACCURACY_BANDS = [(2, 95), (5, 90), (10, 80), (15, 70)]
_FLOOR_ACCURACY = 60


def _clamped(delta: float | None) -> float:
    return delta if delta is not None and delta > 0 else 0.0


def _to_record(row: TripLog) -> TripRecord:
    return TripRecord(
        arrived=row.timestamp_arrived_pickup,
        boarded=row.timestamp_boarded,
        departed=row.timestamp_departed,
        dropped=row.timestamp_arrived_dropoff,
        reached_next=row.timestamp_reached_next,
        missed_cycles=row.missed_cycles or 0,
    )


def summarise_route(mode: Mode, trips: list[TripRecord]) -> dict[str, int]:
    """Rounded wait/travel/total stats for one route's trips."""
    if not trips:
        return {
            "total_trips": 0,
            "avg_wait": 0, "avg_travel": 0, "avg_total": 0,
            "min_wait": 0, "max_wait": 0,
            "min_travel": 0, "max_travel": 0,
            "missed_cycles_avg": 0,
        }

    # Unlike the estimator, bad deltas count as 0 here so every trip is counted.
    waits = [_clamped(minutes_between(t.arrived, t.boarded)) for t in trips]
    travels = [_clamped(minutes_between(t.departed, t.dropped)) for t in trips]
    totals = [w + t for w, t in zip(waits, travels)]
    missed = [t.missed_cycles or 0 for t in trips]
    no_wait = mode.is_duration_only

    return {
        "total_trips": len(trips),
        "avg_wait": 0 if no_wait else round_minutes(mean(waits)),
        "avg_travel": round_minutes(mean(travels)),
        "avg_total": round_minutes(mean(totals)),
        "min_wait": 0 if no_wait else round_minutes(min(waits)),
        "max_wait": 0 if no_wait else round_minutes(max(waits)),
        "min_travel": round_minutes(min(travels)),
        "max_travel": round_minutes(max(travels)),
        "missed_cycles_avg": round_minutes(mean(missed)),
    }


def route_analytics(session: Session, user_id: str | None = None) -> list[dict[str, Any]]:
    routes_query = session.query(Route).order_by(Route.name)
    logs_query = session.query(TripLog)
    if user_id:
        routes_query = routes_query.filter(Route.user_id == user_id)
        logs_query = logs_query.filter(TripLog.user_id == user_id)

    by_route: dict[str, list[TripRecord]] = defaultdict(list)
    for row in logs_query.all():
        by_route[row.route_id].append(_to_record(row))

    return [
        {
            "route_id": route.id,
            "route_name": route.name,
            "mode": route.mode,
            "origin": route.origin or "",
            "destination": route.destination or "",
            **summarise_route(Mode.parse(route.mode or FALLBACK_MODE), by_route.get(route.id, [])),
        }
        for route in routes_query.all()
    ]


def accuracy_band(volatility_min: int) -> int:
    """Prediction accuracy percent implied by travel-time volatility."""
    for limit, accuracy in _ACCURACY_BANDS:
        if volatility_min <= limit:
            return accuracy
    return _FLOOR_ACCURACY


def summarise_benchmark(route_name: str, mode: str | None, travels: list[float]) -> dict[str, Any]:
    volatility = round_minutes(pstdev(travels))
    return {
        "route": route_name,
        "mode": mode,
        "total_trips": len(travels),
        "avg_min": round_minutes(mean(travels)),
        "volatility_min": volatility,
        "prediction_accuracy": f"{accuracy_band(volatility)}%",
    }


def benchmark(session: Session, user_id: str | None = None) -> list[dict[str, Any]]:
    """Per-route volatility benchmark over completed trips."""
    query = (
        session.query(TripLog, Route)
        .outerjoin(Route, Route.id == TripLog.route_id)
        .filter(TripLog.timestamp_arrived_dropoff.isnot(None))
    )
    if user_id:
        query = query.filter(TripLog.user_id == user_id)

    samples: dict[str, list[float]] = {}
    modes: dict[str, str | None] = {}
    for log, route in query.all():
        name = route.name if route is not None else "Unknown"
        samples.setdefault(name, [])
        modes.setdefault(name, route.mode if route is not None else None)
        travel = minutes_between(log.timestamp_departed, log.timestamp_arrived_dropoff)
        if travel is not None and travel > 0:
            samples[name].append(travel)

    return [
        summarise_benchmark(name, modes[name], travels)
        for name, travels in samples.items()
        if travels
    ]


def day_distribution(dates: list[str]) -> dict[str, list]:
    """Count ISO dates per day of week, Sunday first."""
    counts = [0] * 7
    for value in dates:
        try:
            weekday = date.fromisoformat(value).weekday()
        except (TypeError, ValueError):
            logger.warning("Skipping trip log with malformed date %r.", value)
            continue
        counts[(weekday + 1) % 7] += 1
    return {"labels": list(DAY_LABELS), "data": counts}


def day_stats(session: Session, user_id: str | None = None) -> dict[str, list]:
    query = session.query(TripLog.date)
    if user_id:
        query = query.filter(TripLog.user_id == user_id)
    dates = [row[0] for row in query.all()]
    if not dates:
        return {"labels": [], "data": []}
    return day_distribution(dates)
