"""Backend validation for insurance request submissions.

The chatbot webhook posts a flat JSON object with camelCase keys. Values arrive
loosely typed (numbers as strings, consent as "TRUE"/"yes"/1), so every field is
normalized here before it reaches the lifecycle.

On validation failure, raise `SubmissionValidationError` so the API can return
HTTP 400 with structured `field_errors`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from src.insurance.errors import ConsentRequiredError, SubmissionValidationError
from src.insurance.premium import MAX_QUANTITY, MAX_RATE

TRUTHY = ("true", "yes", "1")
FALSY = ("false", "no", "0")

REJECTION_REASON_MIN = 10
REJECTION_REASON_MAX = 500
ADMIN_NOTES_MAX = 500

# Epoch values below this are seconds, anything larger is milliseconds
_EPOCH_MS_THRESHOLD = 10_000_000_000

_OPTIONAL_FIELDS = {
    "supplierName": "supplier_name",
    "supplierPlace": "supplier_place",
    "partyName": "party_name",
    "partyAddress": "party_address",
    "transporterName": "transporter_name",
    "cashCommission": "cash_commission",
    "invoiceType": "invoice_type",
    "kantaParchiImage": "kanta_parchi_image",
}


@dataclass
class InsuranceSubmission:
    user_id: str
    timestamp: datetime
    item_name: str
    quantity: int
    vehicle_no: str
    consent: bool
    rate: Optional[Decimal] = None
    supplier_name: Optional[str] = None
    supplier_place: Optional[str] = None
    party_name: Optional[str] = None
    party_address: Optional[str] = None
    transporter_name: Optional[str] = None
    cash_commission: Optional[str] = None
    invoice_type: Optional[str] = None
    kanta_parchi_image: Optional[str] = None


def _as_str(v: Any) -> str:
    return "" if v is None else str(v)


def _strip(v: Any) -> str:
    return _as_str(v).strip()


def add_error(errors: Dict[str, str], field: str, message: str) -> None:
    if field not in errors:
        errors[field] = message


def require_str(payload: Dict[str, Any], field: str, errors: Dict[str, str], *, label: Optional[str] = None) -> str:
    value = payload.get(field)
    if value is not None and not isinstance(value, str):
        add_error(errors, field, f"{label or field} must be a string")
        return ""
    value = _strip(value)
    if not value:
        add_error(errors, field, f"{label or field} is required")
    return value


def optional_str(payload: Dict[str, Any], field: str, errors: Dict[str, str]) -> Optional[str]:
    value = payload.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        add_error(errors, field, f"{field} must be a string")
        return None
    return value.strip() or None


def normalize_user_id(value: Any) -> str:
    """Digits-only form of a phone number ("+91 98450-12345" -> "919845012345")."""
    return re.sub(r"[^0-9]", "", _as_str(value))


def normalize_consent(value: Any) -> Optional[bool]:
    """Map a loosely typed consent value to a bool, or None when unrecognised."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    s = _strip(value).lower()
    if s in TRUTHY:
        return True
    if s in FALSY:
        return False
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or a Unix epoch in seconds or milliseconds (UTC)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        epoch = float(value)
    else:
        s = _strip(value)
        if not s:
            return None
        if re.fullmatch(r"\d+(\.\d+)?", s):
            epoch = float(s)
        else:
            try:
                parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
            except ValueError:
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
    if epoch <= 0:
        return None
    if epoch >= _EPOCH_MS_THRESHOLD:
        epoch = epoch / 1000.0
    try:
        return datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_quantity(payload: Dict[str, Any], field: str, errors: Dict[str, str]) -> int:
    raw = payload.get(field)
    if raw is None or isinstance(raw, bool) or _strip(raw) == "":
        add_error(errors, field, "Quantity is required")
        return 0
    try:
        dec = Decimal(_strip(raw))
    except InvalidOperation:
        add_error(errors, field, "Quantity must be a number")
        return 0
    if not dec.is_finite() or dec != dec.to_integral_value():
        add_error(errors, field, "Quantity must be a whole number")
        return 0
    val = int(dec)
    if val < 1:
        add_error(errors, field, "Quantity must be at least 1")
    elif val > MAX_QUANTITY:
        add_error(errors, field, f"Quantity must not exceed {MAX_QUANTITY}")
    return val


def parse_rate(payload: Dict[str, Any], field: str, errors: Dict[str, str]) -> Optional[Decimal]:
    raw = payload.get(field)
    if raw is None or isinstance(raw, bool) or _strip(raw) == "":
        return None
    try:
        val = Decimal(_strip(raw))
    except InvalidOperation:
        add_error(errors, field, "Rate must be a valid number")
        return None
    if not val.is_finite():
        add_error(errors, field, "Rate must be a valid number")
        return None
    if val < 0:
        add_error(errors, field, "Rate cannot be negative")
        return None
    if val > MAX_RATE:
        add_error(errors, field, f"Rate must not exceed {MAX_RATE}")
        return None
    return val


def raise_if_errors(errors: Dict[str, str], message: str = "Please correct the highlighted fields") -> None:
    if errors:
        raise SubmissionValidationError(field_errors=errors, message=message)


def validate_submission(payload: Dict[str, Any]) -> InsuranceSubmission:
    """Validate a webhook payload.

    Raises:
        SubmissionValidationError: one or more fields are missing or malformed.
        ConsentRequiredError: the payload is well formed but consent is withheld.
    """
    if not isinstance(payload, dict):
        raise SubmissionValidationError(message="Request body must be a JSON object")

    errors: Dict[str, str] = {}

    user_id = ""
    raw_user_id = payload.get("userId")
    if raw_user_id is None or _strip(raw_user_id) == "":
        add_error(errors, "userId", "User ID is required")
    else:
        user_id = normalize_user_id(raw_user_id)
        if not user_id:
            add_error(errors, "userId", "Invalid User ID format")

    timestamp = None
    if payload.get("timestamp") in (None, ""):
        add_error(errors, "timestamp", "Timestamp is required")
    else:
        timestamp = parse_timestamp(payload.get("timestamp"))
        if timestamp is None:
            add_error(errors, "timestamp", "Invalid timestamp format")

    item_name = require_str(payload, "itemName", errors, label="Item name")
    vehicle_no = require_str(payload, "vehicleNo", errors, label="Vehicle number")
    quantity = parse_quantity(payload, "quantity", errors)
    rate = parse_rate(payload, "rate", errors)

    consent = False
    raw_consent = payload.get("consent")
    if raw_consent is not None and _strip(raw_consent) != "":
        parsed = normalize_consent(raw_consent)
        if parsed is None:
            add_error(errors, "consent", "Consent must be true, false, yes, or no")
        else:
            consent = parsed

    optional = {attr: optional_str(payload, key, errors) for key, attr in _OPTIONAL_FIELDS.items()}

    raise_if_errors(errors)

    if not consent:
        raise ConsentRequiredError()

    return InsuranceSubmission(
        user_id=user_id,
        timestamp=timestamp,
        item_name=item_name,
        quantity=quantity,
        vehicle_no=vehicle_no,
        consent=True,
        rate=rate,
        **optional,
    )


def validate_rejection_reason(reason: Any) -> str:
    errors: Dict[str, str] = {}
    if reason is not None and not isinstance(reason, str):
        add_error(errors, "rejectionReason", "Rejection reason must be a string")
    value = _strip(reason)
    if not value:
        add_error(errors, "rejectionReason", "Rejection reason is required")
    elif len(value) < REJECTION_REASON_MIN:
        add_error(errors, "rejectionReason", f"Rejection reason must be at least {REJECTION_REASON_MIN} characters")
    elif len(value) > REJECTION_REASON_MAX:
        add_error(errors, "rejectionReason", f"Rejection reason must not exceed {REJECTION_REASON_MAX} characters")
    raise_if_errors(errors, message=errors.get("rejectionReason", "Validation failed"))
    return value


def validate_admin_notes(notes: Any) -> Optional[str]:
    if notes is None:
        return None
    errors: Dict[str, str] = {}
    if not isinstance(notes, str):
        add_error(errors, "adminNotes", "Admin notes must be a string")
    elif len(notes) > ADMIN_NOTES_MAX:
        add_error(errors, "adminNotes", f"Admin notes must not exceed {ADMIN_NOTES_MAX} characters")
    raise_if_errors(errors, message=errors.get("adminNotes", "Validation failed"))
    return notes.strip() or None
