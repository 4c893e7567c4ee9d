"""
Staff user model for dashboard authentication.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func

from ..core.database import Base


# =============================================================================
# Enums
# =============================================================================


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    STAFF = "staff"
    USER = "user"


# =============================================================================
# User Model
# =============================================================================


class User(Base):
    """
    Dashboard user.

    Tokens carry the role, so a role change takes effect at the next login.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp())
    last_login = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
