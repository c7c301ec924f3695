"""
Tests for prediction.sources.SqlCommuteDataSource against in-memory SQLite.
"""

import pytest
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.models import Base, Route, RouteSchedule, TripLog
from prediction.errors import DataFetchError
from prediction.models import DayType, TransportMode
from prediction.sources import RequestContext, SqlCommuteDataSource


@pytest.fixture
def db():
    """In-memory SQLite DB with schema, yielding a session."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def seeded(db):
    db.add_all([
        Route(id="R1", user_id="u1", name="Cubao Bus", mode="Bus", origin="Cubao", destination="Ortigas"),
        Route(id="R2", user_id="u2", name="Jeep to work", mode="Habal-habal"),
        TripLog(route_id="R1", user_id="u1", date="2024-01-08",
                timestamp_arrived_pickup="08:00:00", timestamp_boarded="08:04:00",
                timestamp_departed="08:05:00", timestamp_arrived_dropoff="08:17:00",
                missed_cycles=1),
        TripLog(route_id="R1", user_id="u2", date="2024-01-09",
                timestamp_arrived_pickup="09:00:00", timestamp_boarded="09:06:00",
                timestamp_departed="09:06:00", timestamp_arrived_dropoff="09:20:00"),
        RouteSchedule(route_id="R1", user_id="u1", day_type="Weekday",
                      interval_minutes=10, start_time="06:00", end_time="09:00"),
        RouteSchedule(route_id="R1", user_id="u1", day_type="Weekday",
                      interval_minutes=20, start_time="09:01", end_time=None),
        RouteSchedule(route_id="R1", user_id="u1", day_type="Saturday", interval_minutes=30),
    ])
    db.commit()
    return SqlCommuteDataSource(db)


class TestGetRoute:
    def test_known_mode(self, seeded):
        route = seeded.get_route("R1", RequestContext())
        assert route.name == "Cubao Bus"
        assert route.mode.known is TransportMode.BUS
        assert route.origin == "Cubao"

    def test_custom_mode_label(self, seeded):
        route = seeded.get_route("R2", RequestContext())
        assert route.mode.known is None
        assert route.mode.label == "Habal-habal"

    def test_missing_route_is_none(self, seeded):
        assert seeded.get_route("nope", RequestContext()) is None

    def test_scoped_to_user(self, seeded):
        assert seeded.get_route("R1", RequestContext(user_id="u2")) is None
        assert seeded.get_route("R1", RequestContext(user_id="u1")) is not None


class TestGetTripLogs:
    def test_unscoped_returns_all(self, seeded):
        assert len(seeded.get_trip_logs("R1", RequestContext())) == 2

    def test_scoped_returns_own(self, seeded):
        logs = seeded.get_trip_logs("R1", RequestContext(user_id="u1"))
        assert len(logs) == 1
        assert logs[0].boarded == "08:04:00"
        assert logs[0].missed_cycles == 1


class TestGetSchedules:
    def test_filters_day_type(self, seeded):
        entries = seeded.get_schedules("R1", DayType.WEEKDAY, RequestContext())
        assert [e.interval_minutes for e in entries] == [10, 20]
        assert entries[1].end_time is None

    def test_other_day_type(self, seeded):
        entries = seeded.get_schedules("R1", DayType.SATURDAY, RequestContext())
        assert [e.interval_minutes for e in entries] == [30]

    def test_none_for_sunday(self, seeded):
        assert seeded.get_schedules("R1", DayType.SUNDAY_HOLIDAY, RequestContext()) == []


class TestFetchErrors:
    def test_database_error_becomes_data_fetch_error(self, db):
        source = SqlCommuteDataSource(db)
        with patch.object(db, "query", side_effect=OperationalError("SELECT", {}, Exception("gone"))):
            with pytest.raises(DataFetchError) as excinfo:
                source.get_trip_logs("R1", RequestContext())
        assert excinfo.value.route_id == "R1"
        assert excinfo.value.lookup == "trip_logs"
