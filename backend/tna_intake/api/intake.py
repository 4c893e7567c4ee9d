"""
Public intake endpoints.

Endpoints:
- POST /api/patient-assistance: patient-assistance request
- POST /api/provider-application: provider application

Flow: validate and sanitize -> persist + audit (one transaction) -> notify.
Notification failures never fail the submission.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..core.context import RequestContext, get_request_context
from ..core.database import get_db
from ..core.errors import DependencyError, ValidationError
from ..core.transactions import transaction
from ..models.audit_log import AuditAction
from ..models.submission import SubmissionKind
from ..schemas.common import ServerErrorResponse, ValidationErrorResponse
from ..schemas.submission import PatientRequestSubmitResponse, ProviderApplicationSubmitResponse
from ..services.audit import AuditLogger
from ..services.notifications import NotificationDispatcher
from ..services.repository import SubmissionRepository
from ..services.validation import (
    PATIENT_REQUEST_RULES,
    PROVIDER_APPLICATION_RULES,
    normalize_patient_payload,
    validate_and_sanitize,
)
from .deps import get_audit, get_dispatcher, get_repository


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Intake"])

PATIENT_SUCCESS_MESSAGE = (
    "Your request has been submitted successfully. We will contact you within 24 hours."
)
PROVIDER_SUCCESS_MESSAGE = (
    "Your application has been submitted successfully. We will review it within 48 hours."
)

_ERROR_RESPONSES = {
    400: {"model": ValidationErrorResponse},
    500: {"model": ServerErrorResponse},
}


@router.post(
    "/patient-assistance",
    response_model=PatientRequestSubmitResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERROR_RESPONSES,
    summary="Submit a patient-assistance request",
)
async def submit_patient_request(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    repository: SubmissionRepository = Depends(get_repository),
    audit: AuditLogger = Depends(get_audit),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    ctx: RequestContext = Depends(get_request_context),
) -> PatientRequestSubmitResponse:
    """
    Accept a patient-assistance request from the public site.

    ``location`` carries the body-map selection; the legacy
    ``wound_location`` key is accepted when ``location`` is absent.
    High and emergency urgency also page the admin phone by SMS.
    """
    result = validate_and_sanitize(normalize_patient_payload(payload), PATIENT_REQUEST_RULES)
    if result.errors:
        raise ValidationError(result.errors)

    try:
        with transaction(db):
            record = repository.create_patient_request(result.data)
            audit.record(
                None,
                AuditAction.PATIENT_REQUEST_CREATED,
                "patient_requests",
                {"submissionId": record.id, "urgency": record.urgency.value},
                ip_address=ctx.ip_address,
                request_id=ctx.request_id,
            )
    except SQLAlchemyError as e:
        logger.error(f"Failed to store patient request (request_id={ctx.request_id}): {e}")
        raise DependencyError("Failed to submit request")

    await run_in_threadpool(dispatcher.notify_new_submission, SubmissionKind.PATIENT, record)

    return PatientRequestSubmitResponse(
        success=True,
        message=PATIENT_SUCCESS_MESSAGE,
        requestId=record.id,
    )


@router.post(
    "/provider-application",
    response_model=ProviderApplicationSubmitResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERROR_RESPONSES,
    summary="Submit a provider application",
)
async def submit_provider_application(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    repository: SubmissionRepository = Depends(get_repository),
    audit: AuditLogger = Depends(get_audit),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    ctx: RequestContext = Depends(get_request_context),
) -> ProviderApplicationSubmitResponse:
    result = validate_and_sanitize(payload, PROVIDER_APPLICATION_RULES)
    if result.errors:
        raise ValidationError(result.errors)

    try:
        with transaction(db):
            record = repository.create_provider_application(result.data)
            audit.record(
                None,
                AuditAction.PROVIDER_APPLICATION_CREATED,
                "provider_applications",
                {"submissionId": record.id, "specialties": len(record.specialties or [])},
                ip_address=ctx.ip_address,
                request_id=ctx.request_id,
            )
    except SQLAlchemyError as e:
        logger.error(f"Failed to store provider application (request_id={ctx.request_id}): {e}")
        raise DependencyError("Failed to submit application")

    await run_in_threadpool(dispatcher.notify_new_submission, SubmissionKind.PROVIDER, record)

    return ProviderApplicationSubmitResponse(
        success=True,
        message=PROVIDER_SUCCESS_MESSAGE,
        applicationId=record.id,
    )
