import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from jobpilot.core.config import get_settings
from jobpilot.db.tables import metadata

logger = logging.getLogger(__name__)

settings = get_settings()


def _sqlite_timestamp(value: datetime) -> str:
    # Fixed width so stored timestamps compare correctly as text
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f+00:00")


def _create_engine():
    url = settings.sqlalchemy_url
    if url.startswith("sqlite"):
        # SQLite is only used for tests and local runs
        sqlite3.register_adapter(datetime, _sqlite_timestamp)
        return create_engine(url, connect_args={"check_same_thread": False})

    # pool_size=5: maintain 5 connections ready
    # max_overflow=10: allow 10 extra connections under load
    return create_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        echo=settings.debug  # Log SQL queries in debug mode
    )


engine = _create_engine()

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def utc_now() -> datetime:
    """Timestamps are always written from Python so every backend stores the same format."""
    return datetime.now(timezone.utc)


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.
    Usage:
        with get_db_session() as db:
            db.execute(text("SELECT * FROM users"))
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create all tables that do not exist yet."""
    metadata.create_all(engine)


def drop_db() -> None:
    metadata.drop_all(engine)


def test_postgres_connection() -> bool:
    """
    Test if the database is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        with get_db_session() as db:
            result = db.execute(text("SELECT 1 as test"))
            row = result.fetchone()
            return row[0] == 1
    except Exception as e:
        logger.warning("Database connection failed: %s", e)
        return False


def execute_raw_sql(sql: str, params: dict = None) -> list:
    """
    Execute raw SQL and return results as list of dicts.
    This is useful for complex queries and views.
    """
    with get_db_session() as db:
        result = db.execute(text(sql), params or {})
        # Convert rows to dicts
        columns = result.keys()
        return [dict(zip(columns, row)) for row in result.fetchall()]


def fetch_one(sql: str, params: dict = None):
    rows = execute_raw_sql(sql, params)
    return rows[0] if rows else None
