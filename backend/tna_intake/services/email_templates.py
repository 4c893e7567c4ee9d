"""
Notification message templates.

Jinja2 renders the body rows; ``email_base.wrap_in_email_layout`` adds the
shared header and footer. Each builder returns subject, HTML and plain-text
parts so every email goes out as multipart/alternative.

Submission text fields (name, location, message, ...) are HTML-escaped at
intake, so HTML bodies render them as stored and text bodies unescape them.
"""

import html
import re
from dataclasses import dataclass
from typing import Any, Dict

from jinja2 import Environment

from ..core.config import Settings
from ..models.submission import SubmissionKind, SubmissionStatus, UrgencyLevel
from .email_base import (
    wrap_in_email_layout,
    email_divider,
    ACCENT_COLOR,
    EMERGENCY_COLOR,
    HIGH_PRIORITY_COLOR,
    FONT_STACK,
    HEADER_BG_COLOR,
)


_env = Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True)
_TAGS = re.compile(r"<[^>]*>")


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


def strip_html(value: str) -> str:
    """Drop tags for the plain-text part of free-form staff messages."""
    return _TAGS.sub("", value)


def _plain(value: Any) -> str:
    return html.unescape(str(value)) if value is not None else ""


def _kind_label(kind: SubmissionKind) -> str:
    return "Patient Request" if kind == SubmissionKind.PATIENT else "Provider Application"


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _context(record, params: Settings) -> Dict[str, Any]:
    return {
        "record": record,
        "urgency": _enum_value(getattr(record, "urgency", None)),
        "specialties": ", ".join(getattr(record, "specialties", None) or []),
        "params": params,
        "divider": email_divider(),
        "font": FONT_STACK,
        "accent": ACCENT_COLOR,
        "header_bg": HEADER_BG_COLOR,
        "emergency_color": EMERGENCY_COLOR,
        "high_color": HIGH_PRIORITY_COLOR,
        "plain": _plain,
    }


# =============================================================================
# Admin Alert (new submission)
# =============================================================================

ADMIN_ALERT_HTML = _env.from_string("""
{% if urgency == 'emergency' %}
                    <tr>
                        <td style="padding: 0;">
                            <p style="margin: 0; padding: 10px 30px; background: {{ emergency_color }}; color: #FFFFFF; font-family: {{ font }}; font-weight: bold;">EMERGENCY REQUEST</p>
                        </td>
                    </tr>
{% elif urgency == 'high' %}
                    <tr>
                        <td style="padding: 0;">
                            <p style="margin: 0; padding: 10px 30px; background: {{ high_color }}; color: #FFFFFF; font-family: {{ font }}; font-weight: bold;">HIGH PRIORITY</p>
                        </td>
                    </tr>
{% endif %}
                    <tr>
                        <td style="padding: 20px 30px 0 30px; font-family: {{ font }}; font-size: 15px; color: #444444; line-height: 1.6;">
                            <h3 style="margin: 0 0 12px 0; color: #1A1A1A;">Details</h3>
                            <p style="margin: 0;"><strong>Name:</strong> {{ record.name }}</p>
                            <p style="margin: 0;"><strong>Email:</strong> {{ record.email | e }}</p>
                            <p style="margin: 0;"><strong>Phone:</strong> {{ record.phone or 'Not provided' }}</p>
                            <p style="margin: 0;"><strong>Location:</strong> {{ record.location }}</p>
{% if record.wound_type %}
                            <p style="margin: 0;"><strong>Wound Type:</strong> {{ record.wound_type }}</p>
{% endif %}
{% if urgency %}
                            <p style="margin: 0;"><strong>Urgency:</strong> {{ urgency | upper }}</p>
{% endif %}
{% if record.message %}
                            <p style="margin: 12px 0 0 0;"><strong>Message:</strong><br>{{ record.message }}</p>
{% endif %}
{% if record.credentials %}
                            <p style="margin: 0;"><strong>Credentials:</strong> {{ record.credentials }}</p>
{% endif %}
{% if specialties %}
                            <p style="margin: 0;"><strong>Specialties:</strong> {{ specialties }}</p>
{% endif %}
                        </td>
                    </tr>
{{ divider }}
                    <tr>
                        <td align="center" style="padding: 0 30px;">
                            <a href="{{ params.frontend_url }}/admin/submissions.html" style="display: inline-block; padding: 10px 20px; background-color: {{ accent }}; color: #FFFFFF; text-decoration: none; border-radius: 5px; font-family: {{ font }};">View in Dashboard</a>
                        </td>
                    </tr>
""")

ADMIN_ALERT_TEXT = _env.from_string("""New {{ label }}

Name: {{ plain(record.name) }}
Email: {{ record.email }}
Phone: {{ record.phone or 'Not provided' }}
Location: {{ plain(record.location) }}
{% if urgency %}
Urgency: {{ urgency | upper }}
{% endif %}
{% if record.message %}

Message:
{{ plain(record.message) }}
{% endif %}

Login to the admin dashboard to view and respond.""")


def render_admin_alert(kind: SubmissionKind, record, params: Settings) -> RenderedEmail:
    label = _kind_label(kind)
    context = _context(record, params)
    context["label"] = label
    return RenderedEmail(
        subject=f"New {label}",
        html=wrap_in_email_layout(f"New {label}", ADMIN_ALERT_HTML.render(**context), params),
        text=ADMIN_ALERT_TEXT.render(**context).strip(),
    )


# =============================================================================
# Submitter Confirmation
# =============================================================================

CONFIRMATION_SUBJECT = "We received your request - True North Advocates"

CONFIRMATION_HTML = _env.from_string("""
                    <tr>
                        <td style="padding: 20px 30px 0 30px; font-family: {{ font }}; font-size: 15px; color: #444444; line-height: 1.6;">
                            <h2 style="margin: 0 0 12px 0; color: #1A1A1A;">Thank you for reaching out, {{ record.name }}!</h2>
                            <p style="margin: 0;">We have received your {{ description }} and will review it promptly.</p>
                        </td>
                    </tr>
{{ divider }}
                    <tr>
                        <td style="padding: 0 30px; font-family: {{ font }}; font-size: 15px; color: #444444; line-height: 1.6;">
                            <p style="margin: 0;"><strong>What happens next:</strong></p>
                            <ul>
                                <li>Our team will review your submission within {{ review_window }}</li>
                                <li>We will contact you via {{ contact_via }} with next steps</li>
                                <li>If urgent, please don't hesitate to call us at {{ params.org_phone }}</li>
                            </ul>
                            <p style="margin: 0;">Your reference number is: <strong>#{{ record.id }}</strong></p>
                        </td>
                    </tr>
""")

CONFIRMATION_TEXT = _env.from_string("""Thank you for reaching out, {{ plain(record.name) }}!

We have received your {{ description }}.

What happens next:
- Review within {{ review_window }}
- We'll contact you via {{ contact_via }}
- For urgent needs, call {{ params.org_phone }}

Your reference number: #{{ record.id }}

Questions? Email {{ params.org_email }}""")


def review_window(kind: SubmissionKind, record) -> str:
    urgency = _enum_value(getattr(record, "urgency", None))
    if kind == SubmissionKind.PATIENT and urgency == UrgencyLevel.EMERGENCY.value:
        return "2-4 hours"
    return "24-48 hours"


def render_confirmation(kind: SubmissionKind, record, params: Settings) -> RenderedEmail:
    context = _context(record, params)
    context.update(
        description=(
            "patient assistance request" if kind == SubmissionKind.PATIENT
            else "provider application"
        ),
        review_window=review_window(kind, record),
        contact_via="phone or email" if record.phone else "email",
    )
    return RenderedEmail(
        subject=CONFIRMATION_SUBJECT,
        html=wrap_in_email_layout("We Received Your Request", CONFIRMATION_HTML.render(**context), params),
        text=CONFIRMATION_TEXT.render(**context).strip(),
    )


# =============================================================================
# Status Update
# =============================================================================

STATUS_UPDATE_SUBJECT = "Update on Your True North Advocates Request"

STATUS_MESSAGES = {
    SubmissionStatus.APPROVED: "Your request has been approved! We will be contacting you shortly with next steps.",
    SubmissionStatus.CONTACTED: "We have attempted to contact you. Please check your email and phone for our message.",
    SubmissionStatus.IN_PROGRESS: "Your request is being actively processed by our team.",
    SubmissionStatus.COMPLETED: "Your request has been completed. Thank you for choosing True North Advocates!",
    SubmissionStatus.REJECTED: "Unfortunately, we are unable to process your request at this time. Please contact us for more information.",
}
GENERIC_STATUS_MESSAGE = "Your request status has been updated."

STATUS_UPDATE_HTML = _env.from_string("""
                    <tr>
                        <td style="padding: 20px 30px 0 30px; font-family: {{ font }}; font-size: 15px; color: #444444; line-height: 1.6;">
                            <h2 style="margin: 0 0 12px 0; color: #1A1A1A;">Hello {{ record.name }},</h2>
                            <p style="margin: 0;">{{ status_message }}</p>
                            <p style="margin: 12px 0 0 0;">Reference number: <strong>#{{ record.id }}</strong></p>
                        </td>
                    </tr>
""")

STATUS_UPDATE_TEXT = _env.from_string("""Hello {{ plain(record.name) }},

{{ status_message }}

Reference number: #{{ record.id }}

Questions? Email {{ params.org_email }} or call {{ params.org_phone }}""")


def status_message(new_status) -> str:
    try:
        return STATUS_MESSAGES.get(SubmissionStatus(_enum_value(new_status)), GENERIC_STATUS_MESSAGE)
    except ValueError:
        return GENERIC_STATUS_MESSAGE


def render_status_update(record, new_status, params: Settings) -> RenderedEmail:
    context = _context(record, params)
    context["status_message"] = status_message(new_status)
    return RenderedEmail(
        subject=STATUS_UPDATE_SUBJECT,
        html=wrap_in_email_layout("Request Update", STATUS_UPDATE_HTML.render(**context), params),
        text=STATUS_UPDATE_TEXT.render(**context).strip(),
    )


# =============================================================================
# Ad hoc Staff Communication
# =============================================================================

COMMUNICATION_SUBJECT = "Update from True North Advocates"
SMS_MAX_LENGTH = 160


def render_communication(subject: str, message: str, params: Settings) -> RenderedEmail:
    """Staff-authored message; ``message`` may contain HTML."""
    body = f"""
                    <tr>
                        <td style="padding: 20px 30px 0 30px; font-family: {FONT_STACK}; font-size: 15px; color: #444444; line-height: 1.6;">
                            {message}
                        </td>
                    </tr>
"""
    return RenderedEmail(
        subject=subject or COMMUNICATION_SUBJECT,
        html=wrap_in_email_layout(subject or COMMUNICATION_SUBJECT, body, params),
        text=strip_html(message),
    )


# =============================================================================
# SMS
# =============================================================================

def urgent_sms_text(record) -> str:
    return (
        f"URGENT: New patient request from {_plain(record.name)} in "
        f"{_plain(record.location)}. Check dashboard immediately."
    )


def truncate_sms(message: str) -> str:
    return strip_html(message)[:SMS_MAX_LENGTH]
