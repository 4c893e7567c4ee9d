"""
Audit logging service.

Records every security- and compliance-relevant action: submission
creation, status changes, unauthorized attempts, exports, analytics views,
ad hoc communications and unhandled errors.

Each entry is written twice: as a structured line on the
``tna_intake.audit`` logger and as an append-only ``audit_logs`` row.
Audit failures are logged and never propagate to the caller.
"""

import logging
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from ..core.transactions import safe_commit
from ..models.audit_log import AuditLog, AuditAction, ANONYMOUS_ACTOR
from .repository import SubmissionRepository


logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("tna_intake.audit")


class AuditLogger:
    """
    Service for writing audit entries.

    The row is added inside a savepoint of the caller's session, so it
    commits together with the business write around it and a failed insert
    never rolls that write back.

    Example usage:
        audit = AuditLogger(db)
        with transaction(db):
            record = repository.create_patient_request(data)
            audit.record(None, AuditAction.PATIENT_REQUEST_CREATED,
                         "patient_requests", {"id": record.id},
                         ip_address=ip, request_id=request_id)
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        actor_id: Optional[Any],
        action: AuditAction,
        resource: str,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """
        Append one audit entry.

        Args:
            actor_id: Authenticated user id, or None for anonymous callers
            action: Action tag
            resource: Resource acted on (table name or route)
            details: JSON-serialisable context
            ip_address: Originating client address
            request_id: Correlation id of the originating request

        Returns:
            The pending AuditLog, or None if it could not be written
        """
        entry = AuditLog.create_entry(
            action=action,
            resource=resource,
            user_id=actor_id,
            details=details,
            ip_address=ip_address,
            request_id=request_id,
        )
        _emit(entry)

        try:
            SubmissionRepository(self.db).append_audit(entry)
        except Exception as e:
            logger.error(
                "Audit write failed for %s (request_id=%s): %s",
                entry.action, request_id, e,
            )
            return None
        return entry


def record_standalone(
    session_factory: Callable[[], Session],
    actor_id: Optional[Any],
    action: AuditAction,
    resource: str,
    details: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    request_id: Optional[str] = None,
) -> bool:
    """
    Write an audit entry in its own short-lived session.

    Used by middleware paths that run outside any endpoint session
    (rate limit rejections, unhandled errors).

    Returns:
        True if the row was committed
    """
    try:
        db = session_factory()
    except Exception as e:
        logger.error("Audit session unavailable for %s: %s", getattr(action, "value", action), e)
        return False

    try:
        entry = AuditLogger(db).record(
            actor_id, action, resource, details,
            ip_address=ip_address, request_id=request_id,
        )
        return entry is not None and safe_commit(db)
    finally:
        db.close()


def _emit(entry: AuditLog) -> None:
    audit_logger.info(
        "%s %s",
        entry.action,
        entry.resource,
        extra={
            "audit_action": entry.action,
            "audit_resource": entry.resource,
            "actor_id": entry.user_id or ANONYMOUS_ACTOR,
            "ip_address": entry.ip_address,
            "request_id": entry.request_id,
            "details": entry.details,
        },
    )
