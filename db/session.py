"""
Engine and session factory for the commute store (routes, trip logs,
schedules, logger sessions).  SQLite by default; see DATABASE_URL.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from config import DATABASE_URL
from db.models import Base

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create the commute tables if they don't exist."""
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    """Per-request session for FastAPI routes; always closed afterwards."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
