"""
SQLAlchemy ORM models for commute routes, schedules and trip logs.

Wall-clock fields (timestamps, schedule windows) are stored as HH:MM or
HH:MM:SS strings, exactly as the logger records them.  Application code
converts to minutes-past-midnight when needed.

Every table carries an optional user_id.  Lookups filter on it when the
request supplies one; nothing else about tenancy lives here.
"""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Route(Base):
    __tablename__ = "routes"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    mode = Column(String, nullable=False)  # Bus, QCBus, Train, ... or a custom label
    origin = Column(String, default="")
    destination = Column(String, default="")

    trip_logs = relationship("TripLog", back_populates="route")
    schedules = relationship("RouteSchedule", back_populates="route")


class TripLog(Base):
    """One completed trip on a route, as stamped by the logger."""
    __tablename__ = "trip_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=True, index=True)
    route_id = Column(String, ForeignKey("routes.id"), index=True)
    date = Column(String, index=True)  # YYYY-MM-DD
    timestamp_arrived_pickup = Column(String)
    timestamp_boarded = Column(String)
    timestamp_departed = Column(String)
    timestamp_arrived_dropoff = Column(String)
    timestamp_reached_next = Column(String, nullable=True)
    missed_cycles = Column(Integer, default=0)

    route = relationship("Route", back_populates="trip_logs")


class RouteSchedule(Base):
    """Published headway for a route on one day type, optionally time-windowed."""
    __tablename__ = "route_schedules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=True, index=True)
    route_id = Column(String, ForeignKey("routes.id"), index=True)
    day_type = Column(String, index=True)  # "Weekday" | "Saturday" | "Sunday/Holiday"
    interval_minutes = Column(Integer, nullable=False)
    start_time = Column(String, nullable=True)  # HH:MM
    end_time = Column(String, nullable=True)    # HH:MM

    route = relationship("Route", back_populates="schedules")


class LoggerSession(Base):
    """A trip the logger has started but not yet saved as a TripLog."""
    __tablename__ = "logger_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    route_id = Column(String, nullable=True)
    timestamps = Column(String, default="{}")  # JSON object: kind → HH:MM:SS
    missed_cycles = Column(Integer, default=0)
    status = Column(String, default="in_progress", index=True)
    created_at = Column(String)  # ISO 8601 timestamp
    updated_at = Column(String)  # ISO 8601 timestamp
