"""
Ad hoc staff messages to a submitter.

Endpoint:
- POST /api/communications/send
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..core.auth import CurrentUser, STAFF_ROLES, require_role
from ..core.context import RequestContext, get_request_context
from ..core.database import get_db
from ..core.errors import BadRequestError, NotFoundError
from ..core.transactions import safe_commit
from ..models.audit_log import AuditAction
from ..models.notification import NotificationChannel
from ..models.submission import SUBMISSION_MODELS
from ..schemas.common import ErrorResponse
from ..schemas.submission import CommunicationRequest, CommunicationResponse
from ..services.audit import AuditLogger
from ..services.notifications import NotificationDispatcher
from ..services.repository import SubmissionRepository, parse_kind
from .deps import get_audit, get_dispatcher, get_repository


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/communications", tags=["Communications"])

METHODS = tuple(channel.value for channel in NotificationChannel)


@router.post(
    "/send",
    response_model=CommunicationResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Send a message to a submitter",
)
async def send_communication(
    payload: CommunicationRequest,
    db: Session = Depends(get_db),
    repository: SubmissionRepository = Depends(get_repository),
    audit: AuditLogger = Depends(get_audit),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    user: CurrentUser = Depends(require_role(*STAFF_ROLES)),
    ctx: RequestContext = Depends(get_request_context),
) -> CommunicationResponse:
    """
    Email or text the person behind a submission.

    Delivery failures are reported in the body (``success`` false) rather
    than as an HTTP error; the attempt is audited either way.
    """
    if payload.recipientId is None or not payload.type or not payload.method or not payload.message:
        raise BadRequestError("Missing required fields")

    if payload.method not in METHODS:
        raise BadRequestError(f"Invalid method: {payload.method}")

    kind = parse_kind(payload.type)
    record = repository.get_submission_by_id(payload.recipientId, kind)
    if record is None:
        raise NotFoundError("Recipient not found")

    if payload.method == NotificationChannel.SMS.value and not record.phone:
        raise BadRequestError("Recipient has no phone number on file")

    result = await run_in_threadpool(
        dispatcher.send_communication, record, payload.method, payload.subject, payload.message,
    )
    delivered = result is not None and result.delivered

    audit.record(
        user.id,
        AuditAction.SEND_COMMUNICATION,
        SUBMISSION_MODELS[kind].__tablename__,
        {
            "recipientId": record.id,
            "method": payload.method,
            "subject": payload.subject,
            "delivered": delivered,
        },
        ip_address=ctx.ip_address,
        request_id=ctx.request_id,
    )
    safe_commit(db)

    if not delivered:
        logger.warning(f"Communication to {kind.value} {record.id} via {payload.method} not delivered")
        return CommunicationResponse(
            success=False,
            message="Communication could not be delivered",
            method=payload.method,
        )

    return CommunicationResponse(
        success=True,
        message="Communication sent successfully",
        method=payload.method,
    )
