"""
Notification dispatcher.

Fans out new-submission alerts, submitter confirmations, status updates and
ad hoc staff messages over ordered sink chains:

    email: Paubox -> SMTP
    sms:   Twilio -> SMS gateway

A chain tries its primary sink and then exactly one fallback; the first
success wins. Every attempted channel writes one ``NotificationRecord``.
Nothing here raises to the caller: a notification failure must never fail
the submission or status update that triggered it.
"""

import functools
import logging
from typing import Callable, List, Optional, Sequence

from ..core.config import Settings
from ..core.transactions import safe_commit
from ..models.notification import NotificationRecord, NotificationChannel, NotificationOutcome
from ..models.submission import SubmissionKind, utcnow
from .email_service import EmailSink, mask_email
from .email_templates import (
    RenderedEmail,
    render_admin_alert,
    render_communication,
    render_confirmation,
    render_status_update,
    truncate_sms,
    urgent_sms_text,
)
from .repository import SubmissionRepository
from .sms_service import SmsSink


logger = logging.getLogger(__name__)

# primary + one fallback
MAX_ATTEMPTS_PER_CHANNEL = 2


def _never_raises(default_factory):
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception:
                logger.exception("Notification dispatch failed in %s", func.__name__)
                return default_factory()
        return wrapper
    return decorator


class NotificationDispatcher:
    """
    Sends notifications and records what was sent.

    Example usage:
        dispatcher = NotificationDispatcher(
            SubmissionRepository(db), params,
            email_sinks=default_email_sinks(params),
            sms_sinks=default_sms_sinks(params),
        )
        dispatcher.notify_new_submission(SubmissionKind.PATIENT, record)
    """

    def __init__(
        self,
        repository: SubmissionRepository,
        settings: Settings,
        email_sinks: Sequence[EmailSink],
        sms_sinks: Sequence[SmsSink],
    ):
        self.repository = repository
        self.settings = settings
        self.email_sinks = list(email_sinks)
        self.sms_sinks = list(sms_sinks)

    # ==========================================================================
    # Public API
    # ==========================================================================

    @_never_raises(list)
    def notify_new_submission(self, kind: SubmissionKind, record) -> List[NotificationRecord]:
        """
        Admin alert, submitter confirmation and, for high/emergency patient
        requests, an SMS to the admin phone.
        """
        results: List[NotificationRecord] = []

        if self.settings.admin_email:
            alert = render_admin_alert(kind, record, self.settings)
            results.append(self._send_email(
                self.settings.admin_email, alert, summary=f"{alert.subject} #{record.id}",
            ))
        else:
            logger.warning("admin_email not configured; skipping admin alert for %s %s", kind.value, record.id)

        if record.email:
            confirmation = render_confirmation(kind, record, self.settings)
            results.append(self._send_email(
                record.email, confirmation, summary=f"Confirmation for {kind.value} #{record.id}",
            ))

        if kind == SubmissionKind.PATIENT and record.is_urgent:
            if self.settings.admin_phone:
                results.append(self._send_sms(
                    self.settings.admin_phone, urgent_sms_text(record),
                    summary=f"Urgent {kind.value} #{record.id}",
                ))
            else:
                logger.info("admin_phone not configured; no SMS escalation for %s %s", kind.value, record.id)

        return results

    @_never_raises(lambda: None)
    def notify_status_change(self, record, new_status) -> Optional[NotificationRecord]:
        """Status-specific email to the submitter; skipped when there is no email on file."""
        if not record.email:
            logger.info("No email on file for submission %s; status update not sent", record.id)
            return None

        message = render_status_update(record, new_status, self.settings)
        status_value = getattr(new_status, "value", new_status)
        return self._send_email(
            record.email, message, summary=f"Status update #{record.id}: {status_value}",
        )

    @_never_raises(lambda: None)
    def send_communication(
        self,
        record,
        method: str,
        subject: Optional[str],
        message: str,
    ) -> Optional[NotificationRecord]:
        """
        Ad hoc staff message by email or SMS.

        SMS bodies are stripped of HTML and truncated to 160 characters.
        """
        if method == NotificationChannel.SMS.value:
            return self._send_sms(
                record.phone or "", truncate_sms(message),
                summary=truncate_sms(message),
            )

        rendered = render_communication(subject, message, self.settings)
        return self._send_email(record.email, rendered, summary=rendered.subject)

    # ==========================================================================
    # Delivery
    # ==========================================================================

    def _send_email(self, recipient: str, email: RenderedEmail, summary: str) -> NotificationRecord:
        return self._deliver(
            NotificationChannel.EMAIL,
            self.email_sinks,
            recipient,
            summary,
            lambda sink: sink.send(recipient, email.subject, email.html, email.text),
        )

    def _send_sms(self, recipient: str, body: str, summary: str) -> NotificationRecord:
        return self._deliver(
            NotificationChannel.SMS,
            self.sms_sinks,
            recipient,
            summary,
            lambda sink: sink.send(recipient, body),
        )

    def _deliver(
        self,
        channel: NotificationChannel,
        sinks: Sequence,
        recipient: str,
        summary: str,
        send: Callable,
    ) -> NotificationRecord:
        provider = None
        last_error = None

        if not recipient:
            last_error = "no recipient"
        else:
            for sink in sinks[:MAX_ATTEMPTS_PER_CHANNEL]:
                if not sink.is_configured:
                    last_error = f"{sink.name}: not configured"
                    logger.warning("%s sink %s not configured", channel.value, sink.name)
                    continue
                try:
                    send(sink)
                except Exception as e:
                    last_error = str(e)
                    logger.error("%s delivery via %s failed: %s", channel.value, sink.name, e)
                    continue
                provider = sink.name
                break

        outcome = NotificationOutcome.SENT if provider else NotificationOutcome.FAILED
        if provider is None:
            logger.error(
                "%s to %s not delivered: %s",
                channel.value, _mask(channel, recipient), last_error or "no sinks",
            )

        record = NotificationRecord(
            channel=channel.value,
            recipient=recipient,
            message=summary[:1000],
            provider=provider,
            outcome=outcome.value,
            error=None if provider else (last_error or "no sinks"),
            created_at=utcnow(),
        )
        self._persist(record)
        return record

    def _persist(self, record: NotificationRecord) -> None:
        try:
            self.repository.append_notification_record(record)
        except Exception as e:
            logger.error("Failed to store notification record: %s", e)
            return
        safe_commit(self.repository.db)


def _mask(channel: NotificationChannel, recipient: str) -> str:
    if channel == NotificationChannel.EMAIL:
        return mask_email(recipient)
    return f"***{recipient[-4:]}" if recipient else "<none>"
