"""
Pydantic validation schemas for the intake API.

Contains request/response DTOs for every endpoint.
"""

from .common import (
    ErrorResponse,
    HealthResponse,
    ServerErrorResponse,
    ValidationErrorResponse,
)
from .submission import (
    AnalyticsResponse,
    CommunicationRequest,
    CommunicationResponse,
    PatientRequestSubmitResponse,
    ProviderApplicationSubmitResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
    SubmissionListResponse,
    SubmissionOut,
)
from .user import LoginRequest, LoginResponse, LogoutResponse

__all__ = [
    # Common schemas
    "ErrorResponse",
    "HealthResponse",
    "ServerErrorResponse",
    "ValidationErrorResponse",
    # Submission schemas
    "AnalyticsResponse",
    "CommunicationRequest",
    "CommunicationResponse",
    "PatientRequestSubmitResponse",
    "ProviderApplicationSubmitResponse",
    "StatusUpdateRequest",
    "StatusUpdateResponse",
    "SubmissionListResponse",
    "SubmissionOut",
    # Auth schemas
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
]
