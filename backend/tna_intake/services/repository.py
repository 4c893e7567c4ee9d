"""
Persistence layer for submissions, audit entries and notification records.

All queries are composed from SQLAlchemy expressions; filter values are
always bound parameters. Callers own the transaction: the repository only
adds and flushes, and ``transaction(db)`` around it commits.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.errors import BadRequestError, NotFoundError
from ..core.transactions import nested_transaction
from ..models.audit_log import AuditLog
from ..models.notification import NotificationRecord
from ..models.submission import (
    PatientRequest,
    ProviderApplication,
    SubmissionKind,
    SubmissionStatus,
    UrgencyLevel,
    SUBMISSION_MODELS,
    URGENT_LEVELS,
    utcnow,
)


logger = logging.getLogger(__name__)

Submission = Union[PatientRequest, ProviderApplication]


# =============================================================================
# Filters
# =============================================================================

def parse_date_bound(value: Optional[str], field_name: str, end_of_range: bool = False) -> Optional[datetime]:
    """
    Parse an ISO date or datetime query value into an aware UTC datetime.

    A date-only upper bound is moved to the start of the following day and
    compared exclusively, so ``to_date=2024-05-01`` covers all of May 1st.

    Raises:
        BadRequestError: value is not ISO 8601
    """
    if value is None or value == "":
        return None

    try:
        if len(value) == 10:
            parsed = datetime.combine(date.fromisoformat(value), time.min)
            if end_of_range:
                parsed += timedelta(days=1)
        else:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise BadRequestError(f"{field_name} must be an ISO 8601 date")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass
class SubmissionFilters:
    """
    Typed filter over both submission tables.

    ``to_date_exclusive`` is set when ``to_date`` came from a date-only value
    and therefore already points at the next midnight.
    """

    status: Optional[SubmissionStatus] = None
    kind: Optional[SubmissionKind] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    to_date_exclusive: bool = False

    @classmethod
    def from_query(
        cls,
        status: Optional[str] = None,
        kind: Optional[str] = None,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
    ) -> "SubmissionFilters":
        """
        Build filters from raw query-string values.

        Raises:
            BadRequestError: unknown status or type, or malformed date
        """
        return cls(
            status=parse_status(status) if status else None,
            kind=parse_kind(kind) if kind else None,
            from_date=parse_date_bound(from_date, "from_date"),
            to_date=parse_date_bound(to_date, "to_date", end_of_range=True),
            to_date_exclusive=bool(to_date) and len(to_date) == 10,
        )

    def kinds(self) -> List[SubmissionKind]:
        return [self.kind] if self.kind else [SubmissionKind.PATIENT, SubmissionKind.PROVIDER]

    def predicates(self, model) -> list:
        clauses = []
        if self.status is not None:
            clauses.append(model.status == self.status)
        if self.from_date is not None:
            clauses.append(model.created_at >= self.from_date)
        if self.to_date is not None:
            if self.to_date_exclusive:
                clauses.append(model.created_at < self.to_date)
            else:
                clauses.append(model.created_at <= self.to_date)
        return clauses

    def as_dict(self) -> Dict[str, Optional[str]]:
        """Echo of the filters for audit details."""
        return {
            "status": self.status.value if self.status else None,
            "type": self.kind.value if self.kind else None,
            "from_date": self.from_date.isoformat() if self.from_date else None,
            "to_date": self.to_date.isoformat() if self.to_date else None,
        }


def parse_status(value: str) -> SubmissionStatus:
    try:
        return SubmissionStatus(value)
    except ValueError:
        raise BadRequestError(f"Invalid status: {value}")


def parse_kind(value: str) -> SubmissionKind:
    try:
        return SubmissionKind(value)
    except ValueError:
        raise BadRequestError(f"Invalid type: {value}")


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _newest_first(record: Submission) -> Tuple[datetime, int]:
    return (_as_utc(record.created_at), record.id)


# =============================================================================
# Repository
# =============================================================================

class SubmissionRepository:
    """
    Data access for submissions and their side records.

    Example usage:
        repository = SubmissionRepository(db)
        with transaction(db):
            record = repository.create_patient_request(data)
    """

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_patient_request(self, data: Dict[str, Any]) -> PatientRequest:
        """
        Insert a patient request and assign its id.

        Args:
            data: Sanitized fields (name, email, location, and optional
                phone, wound_type, urgency, message)
        """
        now = utcnow()
        record = PatientRequest(
            name=data["name"],
            email=data["email"],
            phone=data.get("phone"),
            location=data["location"],
            wound_type=data.get("wound_type"),
            urgency=UrgencyLevel(data.get("urgency") or UrgencyLevel.MEDIUM.value),
            message=data.get("message"),
            status=SubmissionStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self.db.add(record)
        self.db.flush()
        logger.info("Patient request %s created", record.id)
        return record

    def create_provider_application(self, data: Dict[str, Any]) -> ProviderApplication:
        now = utcnow()
        record = ProviderApplication(
            name=data["name"],
            email=data["email"],
            phone=data["phone"],
            credentials=data["credentials"],
            specialties=list(data.get("specialties") or []),
            location=data["location"],
            status=SubmissionStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self.db.add(record)
        self.db.flush()
        logger.info("Provider application %s created", record.id)
        return record

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_submission_by_id(self, submission_id: int, kind: SubmissionKind) -> Optional[Submission]:
        model = SUBMISSION_MODELS[kind]
        return self.db.query(model).filter(model.id == submission_id).first()

    def _filtered(self, kind: SubmissionKind, filters: SubmissionFilters):
        model = SUBMISSION_MODELS[kind]
        return self.db.query(model).filter(*filters.predicates(model))

    def list_submissions(
        self,
        filters: SubmissionFilters,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Submission], int]:
        """
        One page of submissions, newest first.

        Without a kind filter both tables are merged before paging.

        Args:
            filters: Status/kind/date filters
            page: 1-indexed page number
            limit: Page size

        Returns:
            (rows on this page, total rows matching the filters)
        """
        page = max(page, 1)
        offset = (page - 1) * limit

        if filters.kind is not None:
            model = SUBMISSION_MODELS[filters.kind]
            query = self._filtered(filters.kind, filters)
            total = query.count()
            rows = (
                query.order_by(model.created_at.desc(), model.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return rows, total

        # Each table contributes at most offset + limit rows to the merged page
        merged: List[Submission] = []
        total = 0
        for kind in filters.kinds():
            model = SUBMISSION_MODELS[kind]
            query = self._filtered(kind, filters)
            total += query.count()
            merged.extend(
                query.order_by(model.created_at.desc(), model.id.desc())
                .limit(offset + limit)
                .all()
            )
        merged.sort(key=_newest_first, reverse=True)
        return merged[offset:offset + limit], total

    def export_rows(self, filters: SubmissionFilters) -> List[Submission]:
        """Every submission matching ``filters``, newest first."""
        rows: List[Submission] = []
        for kind in filters.kinds():
            rows.extend(self._filtered(kind, filters).all())
        rows.sort(key=_newest_first, reverse=True)
        return rows

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def update_status(
        self,
        submission_id: int,
        kind: SubmissionKind,
        new_status: SubmissionStatus,
    ) -> Tuple[Submission, SubmissionStatus]:
        """
        Set a submission's status under a row lock.

        Writing the current status again succeeds and only bumps
        ``updated_at``.

        Returns:
            (updated record, previous status)

        Raises:
            NotFoundError: id absent from the table for ``kind``
        """
        model = SUBMISSION_MODELS[kind]
        record = (
            self.db.query(model)
            .filter(model.id == submission_id)
            .with_for_update()
            .first()
        )
        if record is None:
            raise NotFoundError("Submission not found")

        old_status = SubmissionStatus(record.status)
        record.status = new_status
        record.updated_at = utcnow()
        self.db.flush()
        logger.info(
            "%s %s status %s -> %s",
            model.__tablename__, submission_id, old_status.value, new_status.value,
        )
        return record, old_status

    # -------------------------------------------------------------------------
    # Side records
    # -------------------------------------------------------------------------

    def append_audit(self, entry: AuditLog) -> AuditLog:
        with nested_transaction(self.db):
            self.db.add(entry)
            self.db.flush()
        return entry

    def append_notification_record(self, record: NotificationRecord) -> NotificationRecord:
        if record.created_at is None:
            record.created_at = utcnow()
        with nested_transaction(self.db):
            self.db.add(record)
            self.db.flush()
        return record

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    def analytics(
        self,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        to_date_exclusive: bool = False,
    ) -> Dict[str, Any]:
        """
        Aggregate counts over an optional creation-date range.

        ``averageResponseTime`` is the mean hours between creation and the
        last status change over non-pending patient requests, rounded.
        """
        filters = SubmissionFilters(
            from_date=from_date, to_date=to_date, to_date_exclusive=to_date_exclusive,
        )
        patients = self._filtered(SubmissionKind.PATIENT, filters)
        providers = self._filtered(SubmissionKind.PROVIDER, filters)

        patient_count = patients.count()
        provider_count = providers.count()
        urgent_count = patients.filter(PatientRequest.urgency.in_(URGENT_LEVELS)).count()

        answered = (
            patients.filter(PatientRequest.status != SubmissionStatus.PENDING)
            .with_entities(PatientRequest.created_at, PatientRequest.updated_at)
            .all()
        )
        if answered:
            total_hours = sum(
                (_as_utc(updated) - _as_utc(created)).total_seconds() / 3600
                for created, updated in answered
            )
            average_hours = round(total_hours / len(answered))
        else:
            average_hours = 0

        breakdown: Dict[str, int] = {}
        for kind in (SubmissionKind.PATIENT, SubmissionKind.PROVIDER):
            model = SUBMISSION_MODELS[kind]
            rows = (
                self._filtered(kind, filters)
                .with_entities(model.status, func.count(model.id))
                .group_by(model.status)
                .all()
            )
            for status_value, count in rows:
                key = SubmissionStatus(status_value).value
                breakdown[key] = breakdown.get(key, 0) + count

        return {
            "totalSubmissions": patient_count + provider_count,
            "patientRequests": patient_count,
            "providerApplications": provider_count,
            "urgentRequests": urgent_count,
            "averageResponseTime": average_hours,
            "statusBreakdown": breakdown,
        }
