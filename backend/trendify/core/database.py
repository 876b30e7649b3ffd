"""
Database connection (SQLAlchemy)

This module centralizes database access for the whole backend:
- Engine and session factory
- Declarative Base for ORM models
- FastAPI dependency that yields a session per request
- Connection check with retry logic for the health endpoint

PostgreSQL (psycopg2 driver) in production, SQLite for local development
and tests.
"""
import logging
import time
from datetime import datetime, timezone
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import get_settings

logger = logging.getLogger(__name__)


# ============================================================================
# SQLAlchemy Configuration
# ============================================================================

def build_engine(database_url: str):
    """Create an engine with pool settings suited to the backend in use"""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connection before use
        pool_size=10,
        max_overflow=20,
    )


engine = build_engine(get_settings().DATABASE_URL)

# Session Factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base for models
Base = declarative_base()


def get_db():
    """
    FastAPI dependency that yields a SQLAlchemy session

    Usage:
        @router.get("/items")
        def read_items(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope():
    """Session for scripts and jobs: commit on success, rollback on error"""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db():
    """Create all tables (schema migrations are managed outside this service)"""
    # Import models so they register on Base.metadata
    from trendify import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


# ============================================================================
# Connection check with retry logic
# ============================================================================

def check_db_connection(max_retries=3, retry_delay=1.0) -> float:
    """
    Ping the database with automatic retry on connection failures

    Args:
        max_retries: Maximum number of attempts (default: 3)
        retry_delay: Initial delay between retries in seconds (default: 1.0)

    Returns:
        Latency of the successful ping in milliseconds

    Raises:
        OperationalError: If all retry attempts fail
    """
    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database ping attempt {attempt}/{max_retries}")
            start = time.time()
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return round((time.time() - start) * 1000, 2)

        except OperationalError as e:
            logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {e}")

            if attempt < max_retries:
                # Exponential backoff
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)
            else:
                logger.error(f"All {max_retries} connection attempts failed")
                raise


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores UTC"""
    return datetime.now(timezone.utc).replace(tzinfo=None)
