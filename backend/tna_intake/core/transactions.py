"""
Database transaction management utilities.

Provides context managers for safe database transactions
with automatic rollback on error.

Usage:
    with transaction(db):
        repository.create_patient_request(data)
        audit.record(...)
        # Automatically commits on success, rolls back on error
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session


logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """
    Context manager for database transactions with automatic rollback.

    Ensures that all database operations within the context succeed together
    or all fail together.

    Args:
        db: SQLAlchemy database session

    Yields:
        The same database session

    Raises:
        Any exception raised within the context
    """
    try:
        yield db
        db.commit()
        logger.debug("Transaction committed")
    except Exception as e:
        db.rollback()
        logger.error("Transaction rolled back due to error: %s", type(e).__name__)
        raise


@contextmanager
def nested_transaction(db: Session) -> Generator[Session, None, None]:
    """
    Context manager for nested transactions (savepoints).

    Creates a savepoint that can be rolled back independently of the
    outer transaction. Audit and notification records are written this way
    so that their failure never undoes the business write around them.

    Args:
        db: SQLAlchemy database session

    Yields:
        The same database session
    """
    savepoint = db.begin_nested()
    try:
        yield db
        savepoint.commit()
    except Exception as e:
        savepoint.rollback()
        logger.error("Nested transaction rolled back due to error: %s", type(e).__name__)
        raise


def safe_commit(db: Session) -> bool:
    """
    Safely commit a database session with error handling.

    Returns True on success, False on error (with automatic rollback).
    Used for best-effort writes such as audit rows recorded just before
    a request is rejected.

    Args:
        db: SQLAlchemy database session

    Returns:
        True if commit succeeded, False if it failed
    """
    try:
        db.commit()
        return True
    except SQLAlchemyError as e:
        logger.error("Commit failed: %s", e)
        safe_rollback(db)
        return False


def safe_rollback(db: Session) -> None:
    """
    Safely roll back a database session with error handling.

    Catches and logs any errors during rollback to prevent
    double-exception scenarios.
    """
    try:
        db.rollback()
    except Exception as e:
        logger.error("Rollback failed: %s", e)
