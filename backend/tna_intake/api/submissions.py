"""
Staff review endpoints for submissions.

Endpoints:
- GET /api/submissions: filtered, paginated listing of both kinds
- PUT /api/submissions/{id}/status: status transition with submitter notification

Both require the staff or admin role.
"""

import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..core.auth import CurrentUser, STAFF_ROLES, require_role
from ..core.context import RequestContext, get_request_context
from ..core.database import get_db
from ..core.errors import BadRequestError, DependencyError
from ..core.transactions import transaction
from ..models.audit_log import AuditAction
from ..models.submission import SUBMISSION_MODELS
from ..schemas.common import ErrorResponse
from ..schemas.submission import (
    StatusUpdateRequest,
    StatusUpdateResponse,
    SubmissionListResponse,
    SubmissionOut,
)
from ..services.audit import AuditLogger
from ..services.notifications import NotificationDispatcher
from ..services.repository import (
    SubmissionFilters,
    SubmissionRepository,
    parse_kind,
    parse_status,
)
from .deps import get_audit, get_dispatcher, get_repository


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/submissions", tags=["Submissions"])


@router.get(
    "",
    response_model=SubmissionListResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="List submissions",
)
async def list_submissions(
    status: Optional[str] = Query(None, description="Filter by status"),
    type: Optional[str] = Query(None, description="patient or provider; both when omitted"),
    from_date: Optional[str] = Query(None, description="ISO date or datetime, inclusive"),
    to_date: Optional[str] = Query(None, description="ISO date or datetime, inclusive"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    repository: SubmissionRepository = Depends(get_repository),
    audit: AuditLogger = Depends(get_audit),
    user: CurrentUser = Depends(require_role(*STAFF_ROLES)),
    ctx: RequestContext = Depends(get_request_context),
) -> SubmissionListResponse:
    """
    List submissions newest first.

    Without ``type`` both tables are merged before paging.
    """
    filters = SubmissionFilters.from_query(status, type, from_date, to_date)

    with transaction(db):
        audit.record(
            user.id,
            AuditAction.VIEW_SUBMISSIONS,
            "submissions",
            {"filters": filters.as_dict(), "page": page, "limit": limit},
            ip_address=ctx.ip_address,
            request_id=ctx.request_id,
        )

    rows, total = repository.list_submissions(filters, page=page, limit=limit)

    return SubmissionListResponse(
        submissions=[SubmissionOut.from_record(row) for row in rows],
        total=total,
        page=page,
        pages=math.ceil(total / limit),
    )


@router.put(
    "/{submission_id}/status",
    response_model=StatusUpdateResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Update submission status",
)
async def update_submission_status(
    submission_id: int,
    payload: StatusUpdateRequest,
    db: Session = Depends(get_db),
    repository: SubmissionRepository = Depends(get_repository),
    audit: AuditLogger = Depends(get_audit),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    user: CurrentUser = Depends(require_role(*STAFF_ROLES)),
    ctx: RequestContext = Depends(get_request_context),
) -> StatusUpdateResponse:
    """
    Move a submission to a new status and tell the submitter.

    Setting the current status again succeeds; the audit entry then shows
    the same old and new status.
    """
    if not payload.status or not payload.type:
        raise BadRequestError("Missing status or type")

    new_status = parse_status(payload.status)
    kind = parse_kind(payload.type)
    table = SUBMISSION_MODELS[kind].__tablename__

    try:
        with transaction(db):
            record, old_status = repository.update_status(submission_id, kind, new_status)
            audit.record(
                user.id,
                AuditAction.UPDATE_SUBMISSION_STATUS,
                table,
                {
                    "submissionId": submission_id,
                    "oldStatus": old_status.value,
                    "newStatus": new_status.value,
                    "notes": payload.notes,
                },
                ip_address=ctx.ip_address,
                request_id=ctx.request_id,
            )
    except SQLAlchemyError as e:
        logger.error(f"Failed to update {table} {submission_id} (request_id={ctx.request_id}): {e}")
        raise DependencyError("Failed to update status")

    await run_in_threadpool(dispatcher.notify_status_change, record, new_status)

    return StatusUpdateResponse(success=True, submission=SubmissionOut.from_record(record))
