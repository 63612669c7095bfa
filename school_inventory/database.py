"""
Database configuration and session management for the School Inventory service.

This module sets up the database connection using SQLAlchemy and provides
a session factory for database operations.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from .config import DATABASE_URL
from .exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)


def build_engine(url: str):
    """
    Create a SQLAlchemy engine for the given URL.

    SQLite connections are shared across the FastAPI threadpool, so the
    same-thread check is switched off for them.
    """
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


# Create SQLAlchemy engine
# Create SessionLocal class for database sessions
# Base class for declarative models
engine       = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base         = declarative_base()

def get_db():
    """
    Dependency function that provides a database session.
    
    Yields:
        Session: SQLAlchemy database session
        
    Usage:
        Use as a FastAPI dependency to inject database sessions into route handlers.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session, record: str, record_id):
    """
    Run the block as one transaction: commit on success, roll back on failure.

    Versioned rows (items, requests) are written with a compare-and-swap on
    their version column. If another transaction changed one of them in
    between, SQLAlchemy raises StaleDataError, reported here as
    ConcurrencyConflictError for ``record``.

    Args:
        db: Database session
        record: Name of the record being changed, used in the error message
        record_id: ID of that record
    """
    try:
        yield
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning(f"Concurrent modification detected for {record} ID {record_id}: {e}")
        raise ConcurrencyConflictError(record, record_id) from e
    except Exception:
        db.rollback()
        raise
