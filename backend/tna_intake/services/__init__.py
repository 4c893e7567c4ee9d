"""
Business logic services for the intake API.
"""

from .audit import AuditLogger, record_standalone
from .cache import CacheService, get_cache
from .notifications import NotificationDispatcher
from .rate_limit import SlidingWindowRateLimiter
from .repository import SubmissionFilters, SubmissionRepository
from .validation import (
    FieldRule,
    ValidationResult,
    validate_and_sanitize,
    PATIENT_REQUEST_RULES,
    PROVIDER_APPLICATION_RULES,
)

__all__ = [
    "AuditLogger",
    "record_standalone",
    "CacheService",
    "get_cache",
    "NotificationDispatcher",
    "SlidingWindowRateLimiter",
    "SubmissionFilters",
    "SubmissionRepository",
    "FieldRule",
    "ValidationResult",
    "validate_and_sanitize",
    "PATIENT_REQUEST_RULES",
    "PROVIDER_APPLICATION_RULES",
]
