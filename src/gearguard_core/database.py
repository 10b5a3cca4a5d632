"""Database connection, session management and transaction boundaries."""
import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from .config import get_settings

logger = logging.getLogger("gearguard-core.database")

settings = get_settings()


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    # Conservative pool for a shared PostgreSQL instance
    return {
        "pool_pre_ping": True,       # Verify connections before using
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 3600,        # Recycle connections every hour
        "pool_timeout": 30,
    }


engine = create_engine(settings.database_url, **_engine_options(settings.database_url))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function to get database session.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session, operation: str) -> Iterator[Session]:
    """
    Run a named unit of work as a single transaction.

    Everything flushed inside the block is committed together when the block
    exits cleanly. Any exception rolls the whole unit back, so a rejected
    operation leaves no partial mutation and no orphaned audit entry.

    Args:
        db: Database session
        operation: Name of the unit of work, used in log messages

    Yields:
        The same session
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Database error during {operation}: {e}", exc_info=True)
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise
