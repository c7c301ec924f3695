"""
Leg estimator: best / safe / worst wait and travel minutes for one leg.

Two branches, picked by the route's mode:

  duration-only (Walking, Bicycle)
      wait is always 0.  travel = dropoff − pickup per log;
      best/safe/worst = min/mean/max, or the walking defaults.

  wait + travel (every other mode, custom labels included)
      wait = boarded − arrived, travel = dropoff − departed per log.
      best   0 wait              + min travel
      safe   mean wait           + mean travel
      worst  max wait + interval + max travel
      with the schedule interval standing in when there are no usable
      waits, and the vehicle defaults when there is no schedule either.

Non-positive deltas (midnight rollover, out-of-order stamps, placeholder
"00:00:00" values) are dropped before aggregation, never clamped, so every
min/mean/max below runs over a non-empty list of positive samples or is
replaced by a default.

Schedule inputs are evaluated per scenario against that scenario's running
clock: the matched window's interval, and (when enabled) the gap until the
day's first departure if the leg starts before service does.
"""

import logging
from statistics import mean

from config import (
    FIRST_BUS_ADJUSTMENT,
    VEHICLE_DEFAULT_SAFE_WAIT_MINUTES,
    VEHICLE_DEFAULT_TRAVEL_BEST_MINUTES,
    VEHICLE_DEFAULT_TRAVEL_SAFE_MINUTES,
    VEHICLE_DEFAULT_TRAVEL_WORST_MINUTES,
    VEHICLE_DEFAULT_WORST_WAIT_MINUTES,
    WALK_DEFAULT_BEST_MINUTES,
    WALK_DEFAULT_SAFE_MINUTES,
    WALK_DEFAULT_WORST_MINUTES,
)
from prediction.models import (
    ClockTriple,
    DayType,
    EstimateSource,
    LegEstimate,
    Mode,
    ScheduleEntry,
    Timing,
    TripRecord,
)
from prediction.timeutils import minutes_between, parse_clock, time_of_day

logger = logging.getLogger(__name__)

_DAY_START = 0.0
_DAY_END = 23 * 60 + 59.0


def wait_samples(trips: list[TripRecord]) -> list[float]:
    """Positive boarded − arrived deltas, in minutes."""
    return _positive(minutes_between(t.arrived, t.boarded) for t in trips)


def travel_samples(trips: list[TripRecord], duration_only: bool = False) -> list[float]:
    """
    Positive travel deltas, in minutes.

    Vehicle legs measure departed → dropoff.  Duration-only legs measure
    arrived → dropoff, since the logger collapses arrived/boarded/departed
    into one stamp when a walk starts.
    """
    if duration_only:
        return _positive(minutes_between(t.arrived, t.dropped) for t in trips)
    return _positive(minutes_between(t.departed, t.dropped) for t in trips)


def _positive(deltas) -> list[float]:
    return [d for d in deltas if d is not None and d > 0]


def match_interval(entries: list[ScheduleEntry], at_minute: float) -> float:
    """
    Interval of the entry whose [start, end] window contains at_minute.

    Falls back to the first entry when no window matches, and to 0 (no
    schedule influence) when there are no entries at all.
    """
    if not entries:
        return 0.0
    at = time_of_day(at_minute)
    for entry in entries:
        start = _bound(entry.start_time, _DAY_START)
        end = _bound(entry.end_time, _DAY_END)
        if start <= at <= end:
            return float(entry.interval_minutes or 0)
    return float(entries[0].interval_minutes or 0)


def first_departure_gap(
    entries: list[ScheduleEntry], at_minute: float
) -> tuple[float, float] | None:
    """
    (gap, interval) when at_minute falls before the day's first scheduled
    window, else None.  interval is that first window's headway.

    An entry with no start_time runs from midnight, so service has always
    begun when one is present.
    """
    if not entries:
        return None
    first = min(entries, key=lambda e: _bound(e.start_time, _DAY_START))
    first_start = _bound(first.start_time, _DAY_START)
    at = time_of_day(at_minute)
    if first_start <= _DAY_START or at >= first_start:
        return None
    return first_start - at, float(first.interval_minutes or 0)


def _bound(value: str | None, default: float) -> float:
    if not value:
        return default
    try:
        return parse_clock(value)
    except ValueError:
        logger.debug("Ignoring malformed schedule bound %r.", value)
        return default


def estimate_leg(
    mode: Mode,
    trips: list[TripRecord],
    schedules: list[ScheduleEntry],
    day_type: DayType,
    start: ClockTriple | float,
    first_bus_adjustment: bool = FIRST_BUS_ADJUSTMENT,
) -> LegEstimate:
    """
    Estimate one leg.

    Args:
        mode:       The route's transport mode.
        trips:      Historical trip records for the route (any order).
        schedules:  Schedule entries for the route; only those for
                    day_type are considered.
        day_type:   Day type resolved from the request date.
        start:      Leg start clock, either one value for all scenarios or
                    the chain's running ClockTriple.
        first_bus_adjustment: Wait for the first departure when the leg
                    starts before the first schedule window.

    Returns:
        LegEstimate with fractional minutes; rounding is left to display.
    """
    if not isinstance(start, ClockTriple):
        start = ClockTriple.starting_at(start)

    if mode.is_duration_only:
        return _estimate_duration_only(trips)

    applicable = [e for e in schedules if e.day_type == day_type]
    waits = wait_samples(trips)
    travels = travel_samples(trips)

    if travels:
        travel_best, travel_safe, travel_worst = min(travels), mean(travels), max(travels)
    else:
        travel_best = VEHICLE_DEFAULT_TRAVEL_BEST_MINUTES
        travel_safe = VEHICLE_DEFAULT_TRAVEL_SAFE_MINUTES
        travel_worst = VEHICLE_DEFAULT_TRAVEL_WORST_MINUTES

    def scenario_wait(scenario: str, at_minute: float) -> tuple[float, float]:
        gap = first_departure_gap(applicable, at_minute) if first_bus_adjustment else None
        if gap is not None:
            gap_minutes, interval = gap
            if scenario == "worst":
                return gap_minutes + interval, interval
            return gap_minutes, interval

        interval = match_interval(applicable, at_minute)
        if scenario == "best":
            return 0.0, interval
        if scenario == "safe":
            if waits:
                return mean(waits), interval
            if interval > 0:
                return interval / 2, interval
            return VEHICLE_DEFAULT_SAFE_WAIT_MINUTES, interval
        # worst: "just missed it" adds a full cycle on top of the longest wait
        if waits:
            return max(waits) + interval, interval
        if interval > 0:
            return interval, interval
        return VEHICLE_DEFAULT_WORST_WAIT_MINUTES, interval

    wait_best, _ = scenario_wait("best", start.best)
    wait_safe, safe_interval = scenario_wait("safe", start.safe)
    wait_worst, _ = scenario_wait("worst", start.worst)

    if waits or travels:
        source = EstimateSource.HISTORICAL
    elif any(e.interval_minutes for e in applicable):
        source = EstimateSource.SCHEDULE
    else:
        source = EstimateSource.DEFAULT

    logger.debug(
        "Vehicle leg (%s): wait=%.1f/%.1f/%.1f travel=%.1f/%.1f/%.1f interval=%.0f "
        "waits=%d travels=%d schedules=%d",
        mode, wait_best, wait_safe, wait_worst, travel_best, travel_safe, travel_worst,
        safe_interval, len(waits), len(travels), len(applicable),
    )
    return LegEstimate(
        best=Timing(wait_best, travel_best),
        safe=Timing(wait_safe, travel_safe),
        worst=Timing(wait_worst, travel_worst),
        source=source,
        interval=safe_interval,
    )


def _estimate_duration_only(trips: list[TripRecord]) -> LegEstimate:
    travels = travel_samples(trips, duration_only=True)
    if travels:
        return LegEstimate(
            best=Timing(0.0, min(travels)),
            safe=Timing(0.0, mean(travels)),
            worst=Timing(0.0, max(travels)),
            source=EstimateSource.HISTORICAL,
        )
    return LegEstimate(
        best=Timing(0.0, WALK_DEFAULT_BEST_MINUTES),
        safe=Timing(0.0, WALK_DEFAULT_SAFE_MINUTES),
        worst=Timing(0.0, WALK_DEFAULT_WORST_MINUTES),
        source=EstimateSource.DEFAULT,
    )
