"""Database session management with connection pooling"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError

from finance_gateway.config import settings
from finance_gateway.domain.exceptions import ConcurrentModificationError, PersistenceError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

if settings.database_url.startswith("sqlite"):
    engine = create_engine(settings.database_url, connect_args={"check_same_thread": False})
else:
    # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
    engine = create_engine(
        settings.database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def is_unique_violation(error: IntegrityError) -> bool:
    """True when the failed statement hit a unique key rather than another constraint"""
    orig = error.orig
    return getattr(orig, "pgcode", None) == UNIQUE_VIOLATION or "UNIQUE constraint failed" in str(orig)


def get_db() -> Session:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Run a unit of work in one database transaction.

    Commits on success. On any error rolls back, so progress counters and
    generated ledger rows are written together or not at all.

    Raises:
        ConcurrentModificationError: version check or unique constraint lost a race
        PersistenceError: any other storage failure, other constraints included
    """
    try:
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if not is_unique_violation(e):
            logger.error(f"Integrity error: {e}")
            raise PersistenceError("Storage failure") from e
        logger.warning(f"Concurrent modification detected: {e}")
        raise ConcurrentModificationError("Record was modified by another request; reload and retry") from e
    except StaleDataError as e:
        db.rollback()
        logger.warning(f"Concurrent modification detected: {e}")
        raise ConcurrentModificationError("Record was modified by another request; reload and retry") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error: {e}")
        raise PersistenceError("Storage failure") from e
    except Exception:
        db.rollback()
        raise
