"""
Shared FastAPI dependencies for the API routers.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.context import get_parameters
from ..core.database import get_db
from ..services.audit import AuditLogger
from ..services.email_service import default_email_sinks
from ..services.notifications import NotificationDispatcher
from ..services.repository import SubmissionRepository
from ..services.sms_service import default_sms_sinks


def get_repository(db: Session = Depends(get_db)) -> SubmissionRepository:
    return SubmissionRepository(db)


def get_audit(db: Session = Depends(get_db)) -> AuditLogger:
    return AuditLogger(db)


def get_dispatcher(
    repository: SubmissionRepository = Depends(get_repository),
    params: Settings = Depends(get_parameters),
) -> NotificationDispatcher:
    """Dispatcher wired to the production sink chains with the current parameters."""
    return NotificationDispatcher(
        repository,
        params,
        email_sinks=default_email_sinks(params),
        sms_sinks=default_sms_sinks(params),
    )
