"""
Collaborator interface the predictor reads its inputs through.

Three read-only lookups, each taking an explicit RequestContext so the
caller's identity is passed in rather than read from ambient state:

  get_route(route_id)                  → RouteInfo | None
  get_trip_logs(route_id)              → list[TripRecord]
  get_schedules(route_id, day_type)    → list[ScheduleEntry]

SqlCommuteDataSource is the SQLAlchemy-backed implementation used by the
API.  Any database error is re-raised as DataFetchError so the chainer can
apply its degraded-leg policy.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import FALLBACK_MODE
from db.models import Route, RouteSchedule, TripLog
from prediction.errors import DataFetchError
from prediction.models import DayType, Mode, RouteInfo, ScheduleEntry, TripRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """Caller identity; user_id=None means unscoped lookups."""
    user_id: str | None = None


class CommuteDataSource(Protocol):
    def get_route(self, route_id: str, context: RequestContext) -> RouteInfo | None: ...

    def get_trip_logs(self, route_id: str, context: RequestContext) -> list[TripRecord]: ...

    def get_schedules(
        self, route_id: str, day_type: DayType, context: RequestContext
    ) -> list[ScheduleEntry]: ...


class SqlCommuteDataSource:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_route(self, route_id: str, context: RequestContext) -> RouteInfo | None:
        try:
            query = self.session.query(Route).filter(Route.id == route_id)
            if context.user_id:
                query = query.filter(Route.user_id == context.user_id)
            row = query.first()
        except SQLAlchemyError as exc:
            raise DataFetchError(route_id, "route", str(exc)) from exc
        if row is None:
            return None
        return RouteInfo(
            id=row.id,
            name=row.name or "Unknown",
            mode=Mode.parse(row.mode or FALLBACK_MODE),
            origin=row.origin or "",
            destination=row.destination or "",
        )

    def get_trip_logs(self, route_id: str, context: RequestContext) -> list[TripRecord]:
        try:
            query = self.session.query(TripLog).filter(TripLog.route_id == route_id)
            if context.user_id:
                query = query.filter(TripLog.user_id == context.user_id)
            rows = query.all()
        except SQLAlchemyError as exc:
            raise DataFetchError(route_id, "trip_logs", str(exc)) from exc
        return [
            TripRecord(
                arrived=r.timestamp_arrived_pickup,
                boarded=r.timestamp_boarded,
                departed=r.timestamp_departed,
                dropped=r.timestamp_arrived_dropoff,
                reached_next=r.timestamp_reached_next,
                missed_cycles=r.missed_cycles or 0,
            )
            for r in rows
        ]

    def get_schedules(
        self, route_id: str, day_type: DayType, context: RequestContext
    ) -> list[ScheduleEntry]:
        try:
            query = (
                self.session.query(RouteSchedule)
                .filter(RouteSchedule.route_id == route_id)
                .filter(RouteSchedule.day_type == day_type.value)
                .order_by(RouteSchedule.id)
            )
            if context.user_id:
                query = query.filter(RouteSchedule.user_id == context.user_id)
            rows = query.all()
        except SQLAlchemyError as exc:
            raise DataFetchError(route_id, "schedules", str(exc)) from exc
        return [
            ScheduleEntry(
                day_type=day_type,
                interval_minutes=float(r.interval_minutes or 0),
                start_time=r.start_time or None,
                end_time=r.end_time or None,
            )
            for r in rows
        ]
