from datetime import datetime, timezone

import pytest

from tna_intake.core.errors import BadRequestError, NotFoundError
from tna_intake.models.audit_log import AuditAction, AuditLog
from tna_intake.models.submission import SubmissionKind, SubmissionStatus, UrgencyLevel
from tna_intake.services.repository import (
    SubmissionFilters,
    SubmissionRepository,
    parse_date_bound,
)


def at(day: int, hour: int = 12) -> datetime:
    return datetime(2024, 3, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture
def repository(db_session):
    return SubmissionRepository(db_session)


def add_patient(repository, created_at=None, **overrides):
    data = {"name": "Jane Doe", "email": "jane@example.com", "location": "Heel"}
    data.update(overrides)
    record = repository.create_patient_request(data)
    if created_at is not None:
        record.created_at = created_at
        record.updated_at = created_at
    repository.db.commit()
    return record


def add_provider(repository, created_at=None, **overrides):
    data = {
        "name": "Dr. Sam Rivera",
        "email": "sam@clinic.example",
        "phone": "555-987-6543",
        "credentials": "MD",
        "location": "Tucson",
    }
    data.update(overrides)
    record = repository.create_provider_application(data)
    if created_at is not None:
        record.created_at = created_at
        record.updated_at = created_at
    repository.db.commit()
    return record


class TestCreation:

    def test_patient_request_defaults(self, repository):
        record = add_patient(repository)

        assert record.id is not None
        assert record.status == SubmissionStatus.PENDING
        assert record.urgency == UrgencyLevel.MEDIUM
        assert record.created_at == record.updated_at

    def test_provider_application_defaults(self, repository):
        record = add_provider(repository)

        assert record.status == SubmissionStatus.PENDING
        assert record.specialties == []
        assert record.kind == SubmissionKind.PROVIDER


class TestListing:

    def test_combined_listing_is_newest_first(self, repository):
        p1 = add_patient(repository, created_at=at(1))
        a1 = add_provider(repository, created_at=at(2))
        p2 = add_patient(repository, created_at=at(3))

        rows, total = repository.list_submissions(SubmissionFilters())

        assert total == 3
        assert [(row.kind, row.id) for row in rows] == [
            (SubmissionKind.PATIENT, p2.id),
            (SubmissionKind.PROVIDER, a1.id),
            (SubmissionKind.PATIENT, p1.id),
        ]

    def test_pagination_over_both_tables(self, repository):
        for day in range(1, 6):
            add_patient(repository, created_at=at(day))
            add_provider(repository, created_at=at(day, hour=18))

        rows, total = repository.list_submissions(SubmissionFilters(), page=2, limit=4)

        assert total == 10
        assert len(rows) == 4
        # Page 2 starts with the 5th newest: day 3 provider, day 3 patient, day 2 ...
        assert rows[0].created_at.day == 3
        assert rows[0].kind == SubmissionKind.PROVIDER

    def test_kind_and_status_filters(self, repository):
        add_patient(repository)
        approved = add_patient(repository)
        add_provider(repository)
        repository.update_status(approved.id, SubmissionKind.PATIENT, SubmissionStatus.APPROVED)
        repository.db.commit()

        filters = SubmissionFilters.from_query(status="approved", kind="patient")
        rows, total = repository.list_submissions(filters)

        assert total == 1
        assert rows[0].id == approved.id

    def test_date_only_to_date_covers_the_whole_day(self, repository):
        late = add_patient(repository, created_at=at(10, hour=23))
        add_patient(repository, created_at=at(11, hour=1))

        rows, total = repository.list_submissions(
            SubmissionFilters.from_query(from_date="2024-03-10", to_date="2024-03-10")
        )

        assert total == 1
        assert rows[0].id == late.id

    def test_export_rows_returns_everything_matching(self, repository):
        for day in range(1, 4):
            add_patient(repository, created_at=at(day))
        add_provider(repository, created_at=at(5))

        rows = repository.export_rows(SubmissionFilters.from_query(kind="patient"))

        assert len(rows) == 3
        assert all(row.kind == SubmissionKind.PATIENT for row in rows)


class TestFilterParsing:

    def test_invalid_status(self):
        with pytest.raises(BadRequestError, match="Invalid status: archived"):
            SubmissionFilters.from_query(status="archived")

    def test_invalid_type(self):
        with pytest.raises(BadRequestError, match="Invalid type: clinic"):
            SubmissionFilters.from_query(kind="clinic")

    def test_invalid_date(self):
        with pytest.raises(BadRequestError):
            parse_date_bound("last tuesday", "from_date")

    def test_date_only_end_bound_is_next_midnight(self):
        bound = parse_date_bound("2024-03-10", "to_date", end_of_range=True)

        assert bound == datetime(2024, 3, 11, tzinfo=timezone.utc)


class TestStatusUpdate:

    def test_returns_previous_status_and_bumps_updated_at(self, repository):
        record = add_patient(repository, created_at=at(1))

        updated, old_status = repository.update_status(
            record.id, SubmissionKind.PATIENT, SubmissionStatus.CONTACTED,
        )
        repository.db.commit()

        assert old_status == SubmissionStatus.PENDING
        assert updated.status == SubmissionStatus.CONTACTED
        assert updated.updated_at > at(1)

    def test_same_status_is_allowed(self, repository):
        record = add_patient(repository)

        _, old_status = repository.update_status(record.id, SubmissionKind.PATIENT, SubmissionStatus.PENDING)

        assert old_status == SubmissionStatus.PENDING

    def test_id_from_the_other_table_is_not_found(self, repository):
        record = add_patient(repository)

        with pytest.raises(NotFoundError):
            repository.update_status(record.id + 100, SubmissionKind.PATIENT, SubmissionStatus.APPROVED)
        with pytest.raises(NotFoundError):
            repository.update_status(record.id, SubmissionKind.PROVIDER, SubmissionStatus.APPROVED)


class TestSideRecords:

    def test_audit_append_is_committed_with_the_session(self, repository, db_session):
        entry = AuditLog.create_entry(AuditAction.VIEW_ANALYTICS, "analytics", user_id="2")
        repository.append_audit(entry)
        db_session.commit()

        stored = db_session.query(AuditLog).one()
        assert stored.user_id == "2"
        assert stored.action == AuditAction.VIEW_ANALYTICS.value


class TestAnalytics:

    def test_counts_and_average_response_time(self, repository):
        contacted = add_patient(repository, created_at=at(1), urgency="emergency")
        add_patient(repository, created_at=at(2), urgency="high")
        add_patient(repository, created_at=at(3), urgency="low")
        add_provider(repository, created_at=at(4))

        contacted.status = SubmissionStatus.CONTACTED
        contacted.updated_at = at(1, hour=15)
        repository.db.commit()

        stats = repository.analytics()

        assert stats["totalSubmissions"] == 4
        assert stats["patientRequests"] == 3
        assert stats["providerApplications"] == 1
        assert stats["urgentRequests"] == 2
        assert stats["averageResponseTime"] == 3
        assert stats["statusBreakdown"] == {"pending": 3, "contacted": 1}

    def test_empty_range(self, repository):
        add_patient(repository, created_at=at(1))

        stats = repository.analytics(from_date=at(20))

        assert stats["totalSubmissions"] == 0
        assert stats["averageResponseTime"] == 0
        assert stats["statusBreakdown"] == {}
