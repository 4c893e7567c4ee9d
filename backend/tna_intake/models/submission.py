"""
Submission database models.

Two submission kinds share the status lifecycle:
- PatientRequest: patient-assistance requests from the public site
- ProviderApplication: providers applying to join the directory

Status only changes when staff update it; nothing transitions automatically.
"""

import enum
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    JSON,
    ARRAY,
    Enum as SQLEnum,
)

from ..core.database import Base


# =============================================================================
# Enum Definitions
# =============================================================================

class SubmissionKind(str, enum.Enum):
    """Which table a submission lives in (the ``type`` query/body field)."""
    PATIENT = "patient"
    PROVIDER = "provider"


class UrgencyLevel(str, enum.Enum):
    """Patient-reported urgency; HIGH and EMERGENCY escalate to SMS."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"


URGENT_LEVELS = (UrgencyLevel.HIGH, UrgencyLevel.EMERGENCY)


class SubmissionStatus(str, enum.Enum):
    """Review status shared by both submission kinds."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    CONTACTED = "contacted"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _status_column() -> Column:
    return Column(
        SQLEnum(
            SubmissionStatus,
            name="submission_status",
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
        default=SubmissionStatus.PENDING,
        index=True,
    )


# specialties: native array on PostgreSQL, JSON list elsewhere
SpecialtyList = JSON().with_variant(ARRAY(Text), "postgresql")


# =============================================================================
# Shared Helpers
# =============================================================================

class SubmissionMixin:
    """Helpers common to both submission tables."""

    @classmethod
    def column_names(cls) -> List[str]:
        """Column names in declaration order (export headers)."""
        return [column.name for column in cls.__table__.columns]

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for name in self.column_names():
            value = getattr(self, name)
            if isinstance(value, enum.Enum):
                value = value.value
            data[name] = value
        return data


# =============================================================================
# Patient Request Model
# =============================================================================

class PatientRequest(SubmissionMixin, Base):
    """
    Patient-assistance request.

    Attributes:
        id: Sequential integer id (the public reference number)
        name: Submitter name (HTML-escaped at intake)
        email: Submitter email (required)
        phone: Optional phone
        location: Free text; body-map selections arrive comma-joined
        wound_type: Optional wound classification
        urgency: Reported urgency, default medium
        message: Optional free text
        status: Review status, default pending
    """

    __tablename__ = "patient_requests"

    kind = SubmissionKind.PATIENT

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), nullable=True)
    location = Column(String(255), nullable=False)
    wound_type = Column(String(100), nullable=True)
    urgency = Column(
        SQLEnum(
            UrgencyLevel,
            name="urgency_level",
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
        default=UrgencyLevel.MEDIUM,
    )
    message = Column(Text, nullable=True)
    status = _status_column()
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<PatientRequest(id={self.id}, status={self.status}, urgency={self.urgency})>"

    @property
    def is_urgent(self) -> bool:
        return self.urgency in URGENT_LEVELS


# =============================================================================
# Provider Application Model
# =============================================================================

class ProviderApplication(SubmissionMixin, Base):
    """
    Provider application to join the directory.

    Email and phone are required; specialties may be empty.
    """

    __tablename__ = "provider_applications"

    kind = SubmissionKind.PROVIDER

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), nullable=False)
    credentials = Column(String(255), nullable=False)
    specialties = Column(SpecialtyList, nullable=False, default=list)
    location = Column(String(255), nullable=False)
    status = _status_column()
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<ProviderApplication(id={self.id}, status={self.status})>"

    @property
    def is_urgent(self) -> bool:
        return False


SUBMISSION_MODELS = {
    SubmissionKind.PATIENT: PatientRequest,
    SubmissionKind.PROVIDER: ProviderApplication,
}
