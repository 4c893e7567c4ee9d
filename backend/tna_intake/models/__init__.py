"""
SQLAlchemy ORM models for the intake API.

Contains database table definitions for submissions, audit trail,
notification records and dashboard users.
"""

from .submission import (
    PatientRequest,
    ProviderApplication,
    SubmissionKind,
    SubmissionStatus,
    UrgencyLevel,
    SUBMISSION_MODELS,
    URGENT_LEVELS,
)
from .audit_log import AuditLog, AuditAction, ANONYMOUS_ACTOR
from .notification import NotificationRecord, NotificationChannel, NotificationOutcome
from .user import User, UserRole

__all__ = [
    # Submission models and enums
    "PatientRequest",
    "ProviderApplication",
    "SubmissionKind",
    "SubmissionStatus",
    "UrgencyLevel",
    "SUBMISSION_MODELS",
    "URGENT_LEVELS",
    # Audit model and enums
    "AuditLog",
    "AuditAction",
    "ANONYMOUS_ACTOR",
    # Notification model and enums
    "NotificationRecord",
    "NotificationChannel",
    "NotificationOutcome",
    # Users
    "User",
    "UserRole",
]
