"""
Database connection and session management.

Provides SQLAlchemy engine, session factory, and dependency injection
for database sessions in FastAPI endpoints.
"""

from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool, StaticPool

from .config import settings


# =============================================================================
# SQLAlchemy Base
# =============================================================================

Base = declarative_base()


# =============================================================================
# Engine Configuration
# =============================================================================

def build_engine(url: str) -> Engine:
    """
    Create an engine for the given URL.

    PostgreSQL gets a bounded connection pool; SQLite (tests, local runs)
    shares one connection so in-memory databases survive across sessions.

    Args:
        url: SQLAlchemy database URL

    Returns:
        Configured Engine
    """
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=settings.debug,
        )
        _enable_sqlite_savepoints(engine)
        return engine

    engine = create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        poolclass=QueuePool,
        pool_pre_ping=True,  # Enable connection health checks
        pool_recycle=settings.db_pool_recycle,
        pool_timeout=settings.db_pool_timeout,
        echo=settings.debug,  # Log SQL queries in debug mode
    )
    _configure_postgres_session(engine)
    return engine


def _configure_postgres_session(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def set_connection_settings(dbapi_connection, connection_record):
        """
        Configure connection settings when a new connection is created.

        Sets timezone and statement timeout for safety.
        """
        cursor = dbapi_connection.cursor()
        cursor.execute("SET timezone='UTC'")
        cursor.execute("SET statement_timeout = '30s'")
        cursor.close()


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite starts transactions lazily, which breaks SAVEPOINT; hand
    # transaction control to SQLAlchemy instead.
    @event.listens_for(engine, "connect")
    def disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = build_engine(settings.database_url)


# =============================================================================
# Session Factory
# =============================================================================

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


# =============================================================================
# Dependency Injection
# =============================================================================

def get_db(request: Request) -> Generator[Session, None, None]:
    """
    FastAPI dependency for database session injection.

    Sessions come from the factory the application was built with, the same
    one middleware uses for standalone audit rows.

    Yields:
        SQLAlchemy Session instance
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


# =============================================================================
# Database Utilities
# =============================================================================

def init_db() -> None:
    """
    Initialize database tables.

    Creates all tables defined in models. Intended for development,
    tests and first deployment.
    """
    from .. import models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(bind=engine)
