import pytest

from tna_intake.services.validation import (
    FieldRule,
    PATIENT_REQUEST_RULES,
    PROVIDER_APPLICATION_RULES,
    escape_html,
    is_valid_email,
    is_valid_phone,
    normalize_patient_payload,
    validate_and_sanitize,
)


class TestPrimitives:
    """Escaping and format checks."""

    def test_escape_html_replaces_all_five_characters(self):
        assert escape_html("<a href=\"x\">Tom & Jerry's</a>") == (
            "&lt;a href=&quot;x&quot;&gt;Tom &amp; Jerry&#x27;s&lt;/a&gt;"
        )

    @pytest.mark.parametrize("value", ["jane@example.com", "a.b+c@sub.example.org"])
    def test_valid_emails(self, value):
        assert is_valid_email(value)

    @pytest.mark.parametrize("value", ["not-an-email", "jane@example", "jane @example.com", "@example.com"])
    def test_invalid_emails(self, value):
        assert not is_valid_email(value)

    def test_phone_accepts_common_formats(self):
        assert is_valid_phone("(555) 123-4567")
        assert is_valid_phone("+1 555 123 4567")

    def test_phone_rejects_letters_and_punctuation_only(self):
        assert not is_valid_phone("555-CALL-NOW")
        assert not is_valid_phone("()-")

    @pytest.mark.parametrize("value", ["555\t123 4567", "555\n1234567", "5551234567\n"])
    def test_phone_allows_only_plain_spaces(self, value):
        assert not is_valid_phone(value)

    def test_unknown_field_type_is_rejected(self):
        with pytest.raises(ValueError):
            FieldRule(type="date")


class TestPatientRules:

    def test_all_errors_are_reported_together(self):
        result = validate_and_sanitize({"email": "bad", "urgency": "later"}, PATIENT_REQUEST_RULES)

        assert not result.is_valid
        assert "name is required" in result.errors
        assert "email must be a valid email" in result.errors
        assert "location is required" in result.errors
        assert "urgency must be one of: low, medium, high, emergency" in result.errors
        assert len(result.errors) == 4

    def test_sanitized_values_are_trimmed_and_escaped(self):
        payload = {
            "name": "  <script>alert(1)</script>  ",
            "email": " jane@example.com ",
            "location": "Left heel",
            "message": "Tom & Jerry",
        }
        result = validate_and_sanitize(payload, PATIENT_REQUEST_RULES)

        assert result.is_valid
        assert result.data["name"] == "&lt;script&gt;alert(1)&lt;/script&gt;"
        assert result.data["email"] == "jane@example.com"
        assert result.data["message"] == "Tom &amp; Jerry"

    def test_whitespace_only_required_field_is_missing(self):
        payload = {"name": "   ", "email": "jane@example.com", "location": "Heel"}
        result = validate_and_sanitize(payload, PATIENT_REQUEST_RULES)

        assert result.errors == ["name is required"]

    def test_unknown_fields_are_dropped(self):
        payload = {"name": "Jane", "email": "jane@example.com", "location": "Heel", "is_admin": True}
        result = validate_and_sanitize(payload, PATIENT_REQUEST_RULES)

        assert "is_admin" not in result.data

    def test_non_string_value_is_an_error(self):
        payload = {"name": 42, "email": "jane@example.com", "location": "Heel"}
        result = validate_and_sanitize(payload, PATIENT_REQUEST_RULES)

        assert result.errors == ["name must be a string"]

    def test_legacy_wound_location_key(self):
        payload = normalize_patient_payload({"wound_location": "Left heel"})
        assert payload["location"] == "Left heel"

        payload = normalize_patient_payload({"location": "Knee", "wound_location": "Left heel"})
        assert payload["location"] == "Knee"


class TestProviderRules:

    def test_phone_is_required_for_providers(self, provider_payload):
        provider_payload.pop("phone")
        result = validate_and_sanitize(provider_payload, PROVIDER_APPLICATION_RULES)

        assert result.errors == ["phone is required"]

    def test_specialties_are_escaped_and_blank_items_dropped(self, provider_payload):
        provider_payload["specialties"] = ["wound care", "  ", "burns & grafts"]
        result = validate_and_sanitize(provider_payload, PROVIDER_APPLICATION_RULES)

        assert result.is_valid
        assert result.data["specialties"] == ["wound care", "burns &amp; grafts"]

    def test_specialties_must_be_a_list_of_strings(self, provider_payload):
        provider_payload["specialties"] = "wound care"
        result = validate_and_sanitize(provider_payload, PROVIDER_APPLICATION_RULES)

        assert result.errors == ["specialties must be a list of strings"]
