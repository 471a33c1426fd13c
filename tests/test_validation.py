"""
Validation tests for the webhook payload and admin decision inputs.

Run:
    pytest tests/test_validation.py -q
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.insurance.errors import ConsentRequiredError, SubmissionValidationError
from src.insurance.validation import (
    normalize_consent,
    normalize_user_id,
    parse_timestamp,
    validate_admin_notes,
    validate_rejection_reason,
    validate_submission,
)


def test_valid_payload_is_normalized(payload):
    sub = validate_submission(payload)

    assert sub.user_id == "919876543210"
    assert sub.quantity == 45
    assert sub.rate == Decimal("98.50")
    assert sub.consent is True
    assert sub.timestamp == datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)
    assert sub.supplier_name == "Sri Lakshmi Traders"
    assert sub.cash_commission is None


def test_missing_required_fields_are_all_reported():
    with pytest.raises(SubmissionValidationError) as exc:
        validate_submission({"consent": True})

    assert set(exc.value.field_errors) >= {"userId", "timestamp", "itemName", "quantity", "vehicleNo"}


def test_user_id_without_digits_is_rejected(payload):
    payload["userId"] = "abc"
    with pytest.raises(SubmissionValidationError) as exc:
        validate_submission(payload)
    assert exc.value.field_errors["userId"] == "Invalid User ID format"


@pytest.mark.parametrize("quantity", ["0", "-3", "2.5", "lots", True])
def test_invalid_quantity(payload, quantity):
    payload["quantity"] = quantity
    with pytest.raises(SubmissionValidationError) as exc:
        validate_submission(payload)
    assert "quantity" in exc.value.field_errors


def test_negative_rate_is_rejected(payload):
    payload["rate"] = "-1"
    with pytest.raises(SubmissionValidationError) as exc:
        validate_submission(payload)
    assert exc.value.field_errors["rate"] == "Rate cannot be negative"


@pytest.mark.parametrize(
    "field,value,message",
    [
        ("quantity", "2147483648", "Quantity must not exceed 2147483647"),
        ("rate", "10000000000", "Rate must not exceed 9999999999.99"),
        ("rate", "1e30", "Rate must not exceed 9999999999.99"),
    ],
)
def test_values_beyond_column_range_are_field_errors(payload, field, value, message):
    payload[field] = value
    with pytest.raises(SubmissionValidationError) as exc:
        validate_submission(payload)
    assert exc.value.field_errors == {field: message}


def test_largest_storable_values_are_accepted(payload):
    payload["quantity"] = "2147483647"
    payload["rate"] = "9999999999.99"
    submission = validate_submission(payload)
    assert submission.quantity == 2147483647
    assert submission.rate == Decimal("9999999999.99")


def test_rate_is_optional(payload):
    del payload["rate"]
    assert validate_submission(payload).rate is None


@pytest.mark.parametrize("consent", [False, "false", "no", "0", 0])
def test_declined_consent_raises_consent_error(payload, consent):
    payload["consent"] = consent
    with pytest.raises(ConsentRequiredError):
        validate_submission(payload)


def test_missing_consent_raises_consent_error(payload):
    del payload["consent"]
    with pytest.raises(ConsentRequiredError):
        validate_submission(payload)


def test_unrecognised_consent_is_a_field_error(payload):
    payload["consent"] = "maybe"
    with pytest.raises(SubmissionValidationError) as exc:
        validate_submission(payload)
    assert "consent" in exc.value.field_errors


def test_field_errors_take_precedence_over_consent(payload):
    payload["consent"] = "no"
    payload["vehicleNo"] = ""
    with pytest.raises(SubmissionValidationError):
        validate_submission(payload)


@pytest.mark.parametrize(
    "value,expected",
    [(True, True), ("TRUE", True), ("Yes", True), (1, True), ("1", True), ("no", False), ("x", None)],
)
def test_normalize_consent(value, expected):
    assert normalize_consent(value) is expected


def test_normalize_user_id():
    assert normalize_user_id("+91 98450-12345") == "919845012345"
    assert normalize_user_id(None) == ""


def test_parse_timestamp_epoch_seconds_and_millis():
    expected = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)
    assert parse_timestamp(1736937000) == expected
    assert parse_timestamp("1736937000000") == expected
    assert parse_timestamp("not a date") is None


def test_rejection_reason_length_bounds():
    with pytest.raises(SubmissionValidationError):
        validate_rejection_reason("too short")
    with pytest.raises(SubmissionValidationError):
        validate_rejection_reason("x" * 501)
    with pytest.raises(SubmissionValidationError) as exc:
        validate_rejection_reason(None)
    assert exc.value.field_errors["rejectionReason"] == "Rejection reason is required"
    assert validate_rejection_reason("  Vehicle number does not match  ") == "Vehicle number does not match"


def test_admin_notes():
    assert validate_admin_notes(None) is None
    assert validate_admin_notes(" checked ") == "checked"
    with pytest.raises(SubmissionValidationError):
        validate_admin_notes("n" * 501)
