"""
Audit log database model.

Append-only trail of security- and compliance-relevant actions.
Rows are never updated or deleted by the application.
"""

import enum
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB

from ..core.database import Base


# =============================================================================
# Enum Definitions
# =============================================================================

class AuditAction(str, enum.Enum):
    """Types of auditable actions."""
    PATIENT_REQUEST_CREATED = "PATIENT_REQUEST_CREATED"
    PROVIDER_APPLICATION_CREATED = "PROVIDER_APPLICATION_CREATED"
    VIEW_SUBMISSIONS = "VIEW_SUBMISSIONS"
    UPDATE_SUBMISSION_STATUS = "UPDATE_SUBMISSION_STATUS"
    SEND_COMMUNICATION = "SEND_COMMUNICATION"
    EXPORT_DATA = "EXPORT_DATA"
    VIEW_ANALYTICS = "VIEW_ANALYTICS"
    UNAUTHORIZED = "UNAUTHORIZED"
    UNAUTHORIZED_ACCESS_ATTEMPT = "UNAUTHORIZED_ACCESS_ATTEMPT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    LOGIN = "LOGIN"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    ERROR = "ERROR"


ANONYMOUS_ACTOR = "anonymous"


# =============================================================================
# Audit Log Model
# =============================================================================

class AuditLog(Base):
    """
    Audit log entry.

    Attributes:
        id: Integer primary key
        created_at: When the action happened
        user_id: Authenticated user id, or "anonymous"
        action: Action tag (stored as its string value)
        resource: Table, route or logical resource acted on
        details: Opaque JSON payload (never raw PHI beyond what the action needs)
        ip_address: Originating client address
        request_id: Correlation id shared with the request's log lines
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    action = Column(String(64), nullable=False, index=True)
    resource = Column(String(255), nullable=False)
    details = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    ip_address = Column(String(45), nullable=True)
    request_id = Column(String(64), nullable=True, index=True)

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, "
            f"action={self.action}, "
            f"resource={self.resource}, "
            f"user_id={self.user_id})>"
        )

    @classmethod
    def create_entry(
        cls,
        action: AuditAction,
        resource: str,
        user_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> "AuditLog":
        """
        Factory method to create an audit log entry.

        Args:
            action: Type of action
            resource: Resource acted on
            user_id: Actor id; missing actors are recorded as "anonymous"
            details: Optional JSON-serialisable context
            ip_address: Optional client address
            request_id: Optional correlation id

        Returns:
            New AuditLog instance (not saved to DB)
        """
        return cls(
            created_at=datetime.now(timezone.utc),
            user_id=str(user_id) if user_id else ANONYMOUS_ACTOR,
            action=action.value if isinstance(action, AuditAction) else str(action),
            resource=resource,
            details=details or {},
            ip_address=ip_address,
            request_id=request_id,
        )
