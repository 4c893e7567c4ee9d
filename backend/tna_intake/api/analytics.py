"""
Dashboard analytics.

Endpoint:
- GET /api/analytics: counts, urgency and average response time
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import CurrentUser, STAFF_ROLES, require_role
from ..core.context import RequestContext, get_request_context
from ..core.database import get_db
from ..core.transactions import transaction
from ..models.audit_log import AuditAction
from ..schemas.common import ErrorResponse
from ..schemas.submission import AnalyticsResponse
from ..services.audit import AuditLogger
from ..services.repository import SubmissionFilters, SubmissionRepository
from .deps import get_audit, get_repository


router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


@router.get(
    "",
    response_model=AnalyticsResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="Submission analytics",
)
async def get_analytics(
    from_date: Optional[str] = Query(None),
    to_date: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    repository: SubmissionRepository = Depends(get_repository),
    audit: AuditLogger = Depends(get_audit),
    user: CurrentUser = Depends(require_role(*STAFF_ROLES)),
    ctx: RequestContext = Depends(get_request_context),
) -> AnalyticsResponse:
    """Aggregates over submissions created in the optional date range."""
    filters = SubmissionFilters.from_query(from_date=from_date, to_date=to_date)

    with transaction(db):
        audit.record(
            user.id,
            AuditAction.VIEW_ANALYTICS,
            "analytics",
            {"from_date": from_date, "to_date": to_date},
            ip_address=ctx.ip_address,
            request_id=ctx.request_id,
        )

    stats = repository.analytics(
        from_date=filters.from_date,
        to_date=filters.to_date,
        to_date_exclusive=filters.to_date_exclusive,
    )
    return AnalyticsResponse(**stats)
