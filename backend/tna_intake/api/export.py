"""
Admin data export.

Endpoint:
- GET /api/export/{format}: csv or json attachment of filtered submissions
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..core.auth import ADMIN_ROLES, CurrentUser, require_role
from ..core.context import RequestContext, get_request_context
from ..core.database import get_db
from ..core.errors import BadRequestError
from ..core.transactions import transaction
from ..models.audit_log import AuditAction
from ..schemas.common import ErrorResponse
from ..services.audit import AuditLogger
from ..services.export import to_csv, to_json
from ..services.repository import SubmissionFilters, SubmissionRepository
from .deps import get_audit, get_repository


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/export", tags=["Export"])

MEDIA_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
}


@router.get(
    "/{export_format}",
    responses={
        200: {"content": {"text/csv": {}, "application/json": {}}},
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
    },
    summary="Export submissions",
)
async def export_submissions(
    export_format: str,
    type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    from_date: Optional[str] = Query(None),
    to_date: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    repository: SubmissionRepository = Depends(get_repository),
    audit: AuditLogger = Depends(get_audit),
    user: CurrentUser = Depends(require_role(*ADMIN_ROLES)),
    ctx: RequestContext = Depends(get_request_context),
) -> Response:
    if export_format not in MEDIA_TYPES:
        raise BadRequestError("Invalid format. Use csv or json")

    filters = SubmissionFilters.from_query(status, type, from_date, to_date)
    rows = repository.export_rows(filters)

    with transaction(db):
        audit.record(
            user.id,
            AuditAction.EXPORT_DATA,
            "submissions",
            {"format": export_format, "filters": filters.as_dict(), "count": len(rows)},
            ip_address=ctx.ip_address,
            request_id=ctx.request_id,
        )

    if export_format == "csv":
        content = to_csv(rows, filters.kind)
    else:
        content = to_json(rows, filters.kind)

    filename = f"tna-export-{int(time.time() * 1000)}.{export_format}"
    logger.info(f"Exported {len(rows)} submissions as {export_format} for user {user.id}")

    return Response(
        content=content,
        media_type=MEDIA_TYPES[export_format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
