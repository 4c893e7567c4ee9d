"""
Pydantic schemas for submission endpoints.

Intake bodies are free-form JSON checked by the declarative rules in
``services.validation``; everything else has a request model here.
Response keys keep the camelCase the public site and dashboard already use.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Intake Responses
# =============================================================================

class PatientRequestSubmitResponse(BaseModel):
    success: bool = True
    message: str
    requestId: int = Field(..., description="Reference number of the stored request")

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": True,
                "message": "Your request has been submitted successfully. We will contact you within 24 hours.",
                "requestId": 42,
            }
        }
    }


class ProviderApplicationSubmitResponse(BaseModel):
    success: bool = True
    message: str
    applicationId: int = Field(..., description="Reference number of the stored application")


# =============================================================================
# Submission Records
# =============================================================================

class SubmissionOut(BaseModel):
    """
    A patient request or provider application.

    Fields that belong to the other kind are null.
    """

    id: int
    type: str = Field(..., description="patient or provider")
    name: str
    email: str
    phone: Optional[str] = None
    location: str
    status: str
    created_at: datetime
    updated_at: datetime
    # patient requests
    wound_type: Optional[str] = None
    urgency: Optional[str] = None
    message: Optional[str] = None
    # provider applications
    credentials: Optional[str] = None
    specialties: Optional[List[str]] = None

    @classmethod
    def from_record(cls, record) -> "SubmissionOut":
        return cls(type=record.kind.value, **record.to_dict())


class SubmissionListResponse(BaseModel):
    submissions: List[SubmissionOut]
    total: int
    page: int
    pages: int


# =============================================================================
# Status Update
# =============================================================================

class StatusUpdateRequest(BaseModel):
    """Fields are optional here so a missing one yields the dedicated 400 message."""

    status: Optional[str] = None
    type: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=2000)


class StatusUpdateResponse(BaseModel):
    success: bool = True
    submission: SubmissionOut


# =============================================================================
# Communications
# =============================================================================

class CommunicationRequest(BaseModel):
    recipientId: Optional[int] = None
    type: Optional[str] = None
    method: Optional[str] = None
    subject: Optional[str] = Field(None, max_length=255)
    message: Optional[str] = None


class CommunicationResponse(BaseModel):
    success: bool
    message: str
    method: str


# =============================================================================
# Analytics
# =============================================================================

class AnalyticsResponse(BaseModel):
    totalSubmissions: int
    patientRequests: int
    providerApplications: int
    urgentRequests: int
    averageResponseTime: int = Field(..., description="Mean hours to last status change, rounded")
    statusBreakdown: Dict[str, int]

