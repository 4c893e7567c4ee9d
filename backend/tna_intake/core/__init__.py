"""
Core module for the intake API.

Contains configuration, database setup, errors and security utilities.
"""

from .config import settings, ParameterProvider
from .database import get_db, engine, SessionLocal

__all__ = ["settings", "ParameterProvider", "get_db", "engine", "SessionLocal"]
