"""
Declarative validation and sanitization of inbound submission payloads.

A rule set maps field names to ``FieldRule``. ``validate_and_sanitize``
applies every rule, collects every violation (no short circuit) and returns
the trimmed, optionally HTML-escaped values that passed.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[\d +\-()]+$")

_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
}

FIELD_TYPES = ("text", "email", "phone", "list")


def escape_html(value: str) -> str:
    """Replace ``& < > " '`` with their HTML entities."""
    return "".join(_ESCAPES.get(char, char) for char in value)


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.fullmatch(value))


def is_valid_phone(value: str) -> bool:
    return bool(PHONE_PATTERN.fullmatch(value)) and any(char.isdigit() for char in value)


@dataclass(frozen=True)
class FieldRule:
    required: bool = False
    type: str = "text"
    escape: bool = False
    choices: Optional[Sequence[str]] = None

    def __post_init__(self):
        if self.type not in FIELD_TYPES:
            raise ValueError(f"Unknown field type: {self.type}")


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def _clean_list(name: str, value: Any, rule: FieldRule, errors: List[str]) -> Optional[List[str]]:
    if not isinstance(value, (list, tuple)) or not all(isinstance(item, str) for item in value):
        errors.append(f"{name} must be a list of strings")
        return None
    items = []
    for item in value:
        item = item.strip()
        if not item:
            continue
        items.append(escape_html(item) if rule.escape else item)
    return items


def _clean_scalar(name: str, value: Any, rule: FieldRule, errors: List[str]) -> Optional[str]:
    if not isinstance(value, str):
        errors.append(f"{name} must be a string")
        return None

    value = value.strip()
    if rule.type == "email" and not is_valid_email(value):
        errors.append(f"{name} must be a valid email")
        return None
    if rule.type == "phone" and not is_valid_phone(value):
        errors.append(f"{name} must be a valid phone number")
        return None
    if rule.choices is not None and value not in rule.choices:
        errors.append(f"{name} must be one of: {', '.join(rule.choices)}")
        return None

    return escape_html(value) if rule.escape else value


def validate_and_sanitize(
    payload: Mapping[str, Any],
    rules: Mapping[str, FieldRule],
) -> ValidationResult:
    """
    Validate ``payload`` against ``rules``.

    Fields not named in ``rules`` are dropped. A field that fails any check
    is left out of ``data``.

    Args:
        payload: Raw request body
        rules: Field name to rule

    Returns:
        ValidationResult with every error found and the sanitized values
    """
    result = ValidationResult()

    for name, rule in rules.items():
        value = payload.get(name)

        if _is_blank(value):
            if rule.required:
                result.errors.append(f"{name} is required")
            continue

        if rule.type == "list":
            cleaned = _clean_list(name, value, rule, result.errors)
        else:
            cleaned = _clean_scalar(name, value, rule, result.errors)

        if cleaned is not None:
            result.data[name] = cleaned

    return result


# =============================================================================
# Rule Sets
# =============================================================================

URGENCY_CHOICES = ("low", "medium", "high", "emergency")

PATIENT_REQUEST_RULES: Dict[str, FieldRule] = {
    "name": FieldRule(required=True, escape=True),
    "email": FieldRule(required=True, type="email"),
    "phone": FieldRule(type="phone"),
    "location": FieldRule(required=True, escape=True),
    "wound_type": FieldRule(escape=True),
    "urgency": FieldRule(choices=URGENCY_CHOICES),
    "message": FieldRule(escape=True),
}

PROVIDER_APPLICATION_RULES: Dict[str, FieldRule] = {
    "name": FieldRule(required=True, escape=True),
    "email": FieldRule(required=True, type="email"),
    "phone": FieldRule(required=True, type="phone"),
    "credentials": FieldRule(required=True, escape=True),
    "specialties": FieldRule(type="list", escape=True),
    "location": FieldRule(required=True, escape=True),
}


def normalize_patient_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Accept the body-map widget's legacy ``wound_location`` key for ``location``."""
    data = dict(payload)
    if _is_blank(data.get("location")) and not _is_blank(data.get("wound_location")):
        data["location"] = data["wound_location"]
    return data
