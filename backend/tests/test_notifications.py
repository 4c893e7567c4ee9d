import pytest

from tna_intake.models.notification import NotificationRecord
from tna_intake.models.submission import SubmissionKind, SubmissionStatus
from tna_intake.services.email_templates import (
    CONFIRMATION_SUBJECT,
    GENERIC_STATUS_MESSAGE,
    STATUS_MESSAGES,
    SMS_MAX_LENGTH,
    review_window,
    truncate_sms,
)
from tna_intake.services.notifications import NotificationDispatcher
from tna_intake.services.repository import SubmissionRepository

from conftest import ADMIN_EMAIL, ADMIN_PHONE, FakeEmailSink, FakeSmsSink, make_settings


@pytest.fixture
def repository(db_session):
    return SubmissionRepository(db_session)


def patient(repository, **overrides):
    data = {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "phone": "555-123-4567",
        "location": "Left heel",
        "urgency": "medium",
    }
    data.update(overrides)
    record = repository.create_patient_request(data)
    repository.db.commit()
    return record


def dispatcher_for(repository, email_sinks=None, sms_sinks=None, **settings_overrides):
    return NotificationDispatcher(
        repository,
        make_settings(**settings_overrides),
        email_sinks=email_sinks if email_sinks is not None else [FakeEmailSink()],
        sms_sinks=sms_sinks if sms_sinks is not None else [FakeSmsSink()],
    )


class TestNewSubmission:

    def test_routine_request_sends_alert_and_confirmation_only(self, repository):
        email, sms = FakeEmailSink(), FakeSmsSink()
        dispatcher = dispatcher_for(repository, [email], [sms])
        record = patient(repository, urgency="low")

        results = dispatcher.notify_new_submission(SubmissionKind.PATIENT, record)

        assert [message["to"] for message in email.sent] == [ADMIN_EMAIL, "jane@example.com"]
        assert email.sent[0]["subject"] == "New Patient Request"
        assert email.sent[1]["subject"] == CONFIRMATION_SUBJECT
        assert sms.sent == []
        assert len(results) == 2
        assert all(result.delivered for result in results)

    def test_emergency_request_pages_admin_phone(self, repository):
        email, sms = FakeEmailSink(), FakeSmsSink()
        dispatcher = dispatcher_for(repository, [email], [sms])
        record = patient(repository, urgency="emergency")

        dispatcher.notify_new_submission(SubmissionKind.PATIENT, record)

        assert len(sms.sent) == 1
        assert sms.sent[0]["to"] == ADMIN_PHONE
        assert sms.sent[0]["message"].startswith("URGENT: New patient request from Jane Doe")
        assert "EMERGENCY" in email.sent[0]["html"]
        assert repository.db.query(NotificationRecord).count() == 3

    def test_missing_admin_phone_skips_sms(self, repository):
        sms = FakeSmsSink()
        dispatcher = dispatcher_for(repository, sms_sinks=[sms], admin_phone="")
        record = patient(repository, urgency="high")

        results = dispatcher.notify_new_submission(SubmissionKind.PATIENT, record)

        assert sms.sent == []
        assert len(results) == 2

    def test_provider_applications_never_page(self, repository):
        sms = FakeSmsSink()
        dispatcher = dispatcher_for(repository, sms_sinks=[sms])
        record = repository.create_provider_application({
            "name": "Dr. Sam Rivera",
            "email": "sam@clinic.example",
            "phone": "555-987-6543",
            "credentials": "MD",
            "location": "Tucson",
        })
        repository.db.commit()

        dispatcher.notify_new_submission(SubmissionKind.PROVIDER, record)

        assert sms.sent == []

    def test_escaped_names_are_readable_in_text_parts(self, repository):
        email = FakeEmailSink()
        dispatcher = dispatcher_for(repository, [email])
        record = patient(repository, name="O&#x27;Brien &amp; Co")

        dispatcher.notify_new_submission(SubmissionKind.PATIENT, record)

        assert "O'Brien & Co" in email.sent[1]["text"]


class TestFallback:

    def test_fallback_sink_is_used_when_primary_fails(self, repository):
        primary, fallback = FakeEmailSink(fail=True), FakeEmailSink()
        fallback.name = "fallback-email"
        dispatcher = dispatcher_for(repository, [primary, fallback])
        record = patient(repository)

        results = dispatcher.notify_new_submission(SubmissionKind.PATIENT, record)

        assert len(fallback.sent) == 2
        assert all(result.provider == "fallback-email" for result in results)

    def test_unconfigured_primary_counts_as_a_failed_attempt(self, repository):
        primary = FakeEmailSink(configured=False)
        fallback = FakeEmailSink(fail=True)
        third = FakeEmailSink()
        dispatcher = dispatcher_for(repository, [primary, fallback, third])
        record = patient(repository)

        results = dispatcher.notify_new_submission(SubmissionKind.PATIENT, record)

        assert third.sent == []
        assert all(not result.delivered for result in results)
        assert all(result.outcome == "failed" for result in results)
        assert "mailbox unavailable" in results[0].error

    def test_sink_crash_never_reaches_the_caller(self, repository):
        class ExplodingSink(FakeEmailSink):
            def send(self, *args, **kwargs):
                raise RuntimeError("socket closed")

        dispatcher = dispatcher_for(repository, [ExplodingSink()])
        record = patient(repository)

        results = dispatcher.notify_new_submission(SubmissionKind.PATIENT, record)

        assert len(results) == 2
        assert all(not result.delivered for result in results)


class TestStatusChange:

    @pytest.mark.parametrize("new_status", [
        SubmissionStatus.APPROVED,
        SubmissionStatus.CONTACTED,
        SubmissionStatus.IN_PROGRESS,
        SubmissionStatus.COMPLETED,
        SubmissionStatus.REJECTED,
    ])
    def test_status_specific_copy(self, repository, new_status):
        email = FakeEmailSink()
        dispatcher = dispatcher_for(repository, [email])
        record = patient(repository)

        dispatcher.notify_status_change(record, new_status)

        assert STATUS_MESSAGES[new_status] in email.sent[0]["text"]

    def test_generic_copy_for_other_statuses(self, repository):
        email = FakeEmailSink()
        dispatcher = dispatcher_for(repository, [email])
        record = patient(repository)

        dispatcher.notify_status_change(record, SubmissionStatus.CANCELLED)

        assert GENERIC_STATUS_MESSAGE in email.sent[0]["text"]

    def test_skipped_without_email(self, repository):
        email = FakeEmailSink()
        dispatcher = dispatcher_for(repository, [email])
        record = patient(repository)
        record.email = ""

        assert dispatcher.notify_status_change(record, SubmissionStatus.APPROVED) is None
        assert email.sent == []


class TestCommunication:

    def test_sms_is_stripped_and_truncated(self, repository):
        sms = FakeSmsSink()
        dispatcher = dispatcher_for(repository, sms_sinks=[sms])
        record = patient(repository)

        result = dispatcher.send_communication(record, "sms", None, "<p>" + "x" * 300 + "</p>")

        assert result.delivered
        assert sms.sent[0]["message"] == "x" * SMS_MAX_LENGTH
        assert sms.sent[0]["to"] == "555-123-4567"

    def test_email_uses_default_subject(self, repository):
        email = FakeEmailSink()
        dispatcher = dispatcher_for(repository, [email])
        record = patient(repository)

        dispatcher.send_communication(record, "email", None, "<b>Your appointment is set.</b>")

        assert email.sent[0]["subject"] == "Update from True North Advocates"
        assert email.sent[0]["text"] == "Your appointment is set."


class TestTemplates:

    def test_review_window(self, repository):
        assert review_window(SubmissionKind.PATIENT, patient(repository, urgency="emergency")) == "2-4 hours"
        assert review_window(SubmissionKind.PATIENT, patient(repository, urgency="high")) == "24-48 hours"

    def test_truncate_sms(self):
        assert truncate_sms("<b>hi</b>") == "hi"
        assert len(truncate_sms("y" * 500)) == SMS_MAX_LENGTH
