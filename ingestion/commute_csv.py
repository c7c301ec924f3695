"""
Bulk-loads commute data exported as CSV into the local database.

Files read from one directory:
  routes.csv           → Route          (required)
  route_schedules.csv  → RouteSchedule  (optional)
  trip_logs.csv        → TripLog        (optional)

Column names match the hosted datastore's export.  Existing rows are
replaced; schedules and logs that reference unknown routes are skipped.
"""

import logging
from pathlib import Path

import pandas as pd
from sqlalchemy.orm import Session

from config import FALLBACK_MODE
from db.models import Route, RouteSchedule, TripLog
from prediction.models import DayType

logger = logging.getLogger(__name__)

ROUTES_FILE = "routes.csv"
SCHEDULES_FILE = "route_schedules.csv"
TRIP_LOGS_FILE = "trip_logs.csv"

_DAY_TYPES = {d.value for d in DayType}


def import_commute_csvs(directory: Path, session: Session) -> dict[str, int]:
    """
    Replace routes, schedules and trip logs with the CSV export in directory.

    Returns:
        Row counts loaded per table.

    Raises:
        FileNotFoundError: If routes.csv is missing.
    """
    directory = Path(directory)
    routes_path = directory / ROUTES_FILE
    if not routes_path.exists():
        raise FileNotFoundError(f"{routes_path} not found.")

    def read(filename: str) -> pd.DataFrame | None:
        path = directory / filename
        if not path.exists():
            logger.info("%s not present; skipping.", path)
            return None
        return pd.read_csv(path, dtype=str).fillna("")

    counts = {"routes": 0, "route_schedules": 0, "trip_logs": 0}

    # Dependants first so the route delete never orphans rows.
    session.query(TripLog).delete()
    session.query(RouteSchedule).delete()
    counts["routes"] = _parse_routes(read(ROUTES_FILE), session)

    schedules = read(SCHEDULES_FILE)
    if schedules is not None:
        counts["route_schedules"] = _parse_schedules(schedules, session)
    logs = read(TRIP_LOGS_FILE)
    if logs is not None:
        counts["trip_logs"] = _parse_trip_logs(logs, session)

    session.commit()
    logger.info("Commute data committed: %s", counts)
    return counts


def _parse_routes(df: pd.DataFrame, session: Session) -> int:
    session.query(Route).delete()
    for _, row in df.iterrows():
        session.add(Route(
            id=row["id"],
            user_id=row.get("user_id") or None,
            name=row["name"],
            mode=row.get("mode") or FALLBACK_MODE,
            origin=row.get("origin", ""),
            destination=row.get("destination", ""),
        ))
    session.flush()
    logger.info("Loaded %d routes.", len(df))
    return len(df)


def _valid_route_ids(session: Session) -> set[str]:
    return {r[0] for r in session.query(Route.id).all()}


def _parse_schedules(df: pd.DataFrame, session: Session) -> int:
    valid_routes = _valid_route_ids(session)
    loaded = skipped = 0
    for _, row in df.iterrows():
        if row["route_id"] not in valid_routes or row["day_type"] not in _DAY_TYPES:
            skipped += 1
            continue
        try:
            interval = int(float(row["interval_minutes"]))
        except (ValueError, OverflowError):
            skipped += 1
            continue
        session.add(RouteSchedule(
            route_id=row["route_id"],
            user_id=row.get("user_id") or None,
            day_type=row["day_type"],
            interval_minutes=interval,
            start_time=row.get("start_time") or None,
            end_time=row.get("end_time") or None,
        ))
        loaded += 1
    if skipped:
        logger.warning("Skipped %d schedules with unknown route_id, day_type or interval.", skipped)
    logger.info("Loaded %d schedules.", loaded)
    return loaded


def _parse_trip_logs(df: pd.DataFrame, session: Session) -> int:
    valid_routes = _valid_route_ids(session)
    records = []
    skipped = 0
    for _, row in df.iterrows():
        if row["route_id"] not in valid_routes:
            skipped += 1
            continue
        missed = row.get("missed_cycles", "")
        try:
            missed_cycles = int(float(missed)) if missed else 0
        except (ValueError, OverflowError):
            skipped += 1
            continue
        records.append(TripLog(
            route_id=row["route_id"],
            user_id=row.get("user_id") or None,
            date=row.get("date", ""),
            timestamp_arrived_pickup=row.get("timestamp_arrived_pickup") or None,
            timestamp_boarded=row.get("timestamp_boarded") or None,
            timestamp_departed=row.get("timestamp_departed") or None,
            timestamp_arrived_dropoff=row.get("timestamp_arrived_dropoff") or None,
            timestamp_reached_next=row.get("timestamp_reached_next") or None,
            missed_cycles=missed_cycles,
        ))
    if skipped:
        logger.warning("Skipped %d trip logs with unknown route_id or bad missed_cycles.", skipped)
    session.bulk_save_objects(records)
    logger.info("Loaded %d trip logs.", len(records))
    return len(records)
