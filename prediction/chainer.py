"""
Trip chainer: walks an itinerary of legs and accumulates best / safe / worst
arrival clocks.

Algorithm:
  1. Validate the request (non-empty route_ids, HH:MM[:SS] start_time,
     optional ISO date) before touching any collaborator.
  2. Resolve the day type from the date (default: today).
  3. Fetch every leg's route, trip logs and day-type schedules up front.
  4. Apply legs strictly in itinerary order: each leg is estimated against
     the clocks accumulated by the legs before it, then each clock advances
     by its own scenario's wait + travel.

Leg fetch failure policy (uniform for every leg): a leg whose route cannot
be resolved, or whose logs/schedules lookup raises DataFetchError, is
estimated with no history and no schedule.  Its mode falls back to
FALLBACK_MODE when the route itself is unknown.  The breakdown entry is
tagged degraded=True, source="default".  A failed leg is never zero-cost.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from config import FALLBACK_MODE, FIRST_BUS_ADJUSTMENT
from prediction.errors import DataFetchError, ValidationError
from prediction.estimator import estimate_leg
from prediction.models import (
    ClockTriple,
    DayType,
    LegEstimate,
    Mode,
    RouteInfo,
    ScheduleEntry,
    Timing,
    TripRecord,
)
from prediction.sources import CommuteDataSource, RequestContext
from prediction.timeutils import format_clock, parse_clock, resolve_day_type, round_minutes

logger = logging.getLogger(__name__)


@dataclass
class LegInputs:
    """Everything fetched for one leg before the apply loop runs."""
    route_id: str
    route: RouteInfo
    trips: list[TripRecord] = field(default_factory=list)
    schedules: list[ScheduleEntry] = field(default_factory=list)
    degraded: bool = False


def validate_request(
    route_ids: list[str] | None,
    start_time: str | None,
    travel_date: str | None = None,
    today: date | None = None,
) -> tuple[float, date]:
    """
    Return (start minutes, target date) or raise ValidationError.
    """
    if not route_ids:
        raise ValidationError("route_ids must contain at least one route.")
    if any(not isinstance(r, str) or not r.strip() for r in route_ids):
        raise ValidationError("route_ids must be non-empty strings.")
    if not start_time:
        raise ValidationError("start_time is required (HH:MM or HH:MM:SS).")
    try:
        start_minutes = parse_clock(start_time)
    except ValueError as exc:
        raise ValidationError(f"Invalid start_time: {exc}") from exc
    try:
        target = date.fromisoformat(travel_date) if travel_date else (today or date.today())
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {exc}") from exc
    return start_minutes, target


def fetch_leg(
    source: CommuteDataSource,
    route_id: str,
    day_type: DayType,
    context: RequestContext,
) -> LegInputs:
    """Fetch one leg's inputs, degrading to a defaulted leg on failure."""
    try:
        route = source.get_route(route_id, context)
    except DataFetchError as exc:
        logger.warning("Route lookup failed for leg %s: %s", route_id, exc)
        route = None

    if route is None:
        logger.warning("Route %s unavailable; estimating with %s defaults.", route_id, FALLBACK_MODE)
        return LegInputs(
            route_id=route_id,
            route=RouteInfo(id=route_id, name="Unknown", mode=Mode.parse(FALLBACK_MODE)),
            degraded=True,
        )

    try:
        trips = source.get_trip_logs(route_id, context)
        schedules = source.get_schedules(route_id, day_type, context)
    except DataFetchError as exc:
        logger.warning("Leg %s degraded to defaults: %s", route_id, exc)
        return LegInputs(route_id=route_id, route=route, degraded=True)

    return LegInputs(route_id=route_id, route=route, trips=trips, schedules=schedules)


def chain_predict(
    route_ids: list[str],
    start_time: str,
    source: CommuteDataSource,
    travel_date: str | None = None,
    context: RequestContext | None = None,
    today: date | None = None,
    first_bus_adjustment: bool = FIRST_BUS_ADJUSTMENT,
) -> dict[str, Any]:
    """
    Predict arrival times for an ordered itinerary.

    Args:
        route_ids:   Route ids in itinerary order (order is significant).
        start_time:  Departure clock, HH:MM or HH:MM:SS.
        source:      Collaborator providing routes, logs and schedules.
        travel_date: ISO date selecting the day type; defaults to today.
        context:     Caller identity passed to every collaborator lookup.
        today:       Override for "today" (tests).

    Returns:
        {
          "start_time": "HH:MM",
          "date":       "YYYY-MM-DD",
          "day_type":   "Weekday" | "Saturday" | "Sunday/Holiday",
          "arrivals":   {"best": "HH:MM", "safe": "HH:MM", "worst": "HH:MM"},
          "breakdown":  [per-leg dict, in itinerary order],
        }

    Raises:
        ValidationError: Before any fetch, if the request is malformed.
    """
    start_minutes, target = validate_request(route_ids, start_time, travel_date, today)
    context = context or RequestContext()
    day_type = resolve_day_type(target)

    legs = [fetch_leg(source, route_id, day_type, context) for route_id in route_ids]

    clocks = ClockTriple.starting_at(start_minutes)
    breakdown: list[dict[str, Any]] = []
    for index, leg in enumerate(legs):
        estimate = estimate_leg(
            leg.route.mode,
            leg.trips,
            leg.schedules,
            day_type,
            clocks,
            first_bus_adjustment=first_bus_adjustment,
        )
        if not estimate.is_ordered():
            logger.warning(
                "Leg %d (%s) scenarios out of order: best=%.1f safe=%.1f worst=%.1f",
                index, leg.route_id,
                estimate.best.total, estimate.safe.total, estimate.worst.total,
            )
        clocks = clocks.advance(estimate)
        breakdown.append(_breakdown_entry(leg, estimate, clocks))
        logger.info(
            "Leg %d route=%s: wait=%.1f/%.1f travel=%.1f/%.1f interval=%.0f "
            "logs=%d schedules=%d source=%s",
            index, leg.route_id,
            estimate.safe.wait, estimate.worst.wait,
            estimate.safe.travel, estimate.worst.travel,
            estimate.interval, len(leg.trips), len(leg.schedules), estimate.source.value,
        )

    return {
        "start_time": format_clock(start_minutes),
        "date": target.isoformat(),
        "day_type": day_type.value,
        "arrivals": _format_clocks(clocks),
        "breakdown": breakdown,
    }


def _breakdown_entry(leg: LegInputs, estimate: LegEstimate, clocks: ClockTriple) -> dict[str, Any]:
    return {
        "route_id": leg.route_id,
        "name": leg.route.name,
        "mode": leg.route.mode.label,
        "origin": leg.route.origin,
        "destination": leg.route.destination,
        "source": estimate.source.value,
        "degraded": leg.degraded,
        "interval": round_minutes(estimate.interval),
        "timelines": {
            "best": _display(estimate.best),
            "safe": _display(estimate.safe),
            "worst": _display(estimate.worst),
        },
        "arrival_time": _format_clocks(clocks),
    }


def _display(timing: Timing) -> dict[str, int]:
    return {"wait": round_minutes(timing.wait), "travel": round_minutes(timing.travel)}


def _format_clocks(clocks: ClockTriple) -> dict[str, str]:
    return {
        "best": format_clock(clocks.best),
        "safe": format_clock(clocks.safe),
        "worst": format_clock(clocks.worst),
    }
