"""
camelCase JSON projections of stored requests.

Both stores return plain attribute objects (ORM rows or dataclasses), so
everything here reads attributes and never touches lazy relationships.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return getattr(value, "value", value)


_REQUEST_FIELDS = {
    "id": "id",
    "userId": "user_id",
    "timestamp": "timestamp",
    "itemName": "item_name",
    "quantity": "quantity",
    "vehicleNo": "vehicle_no",
    "supplierName": "supplier_name",
    "supplierPlace": "supplier_place",
    "partyName": "party_name",
    "partyAddress": "party_address",
    "rate": "rate",
    "transporterName": "transporter_name",
    "cashCommission": "cash_commission",
    "invoiceType": "invoice_type",
    "kantaParchiImage": "kanta_parchi_image",
    "consent": "consent",
    "status": "status",
    "premiumAmount": "premium_amount",
    "adminAction": "admin_action",
    "adminTimestamp": "admin_timestamp",
    "adminNotes": "admin_notes",
    "rejectionReason": "rejection_reason",
    "invoiceNumber": "invoice_number",
    "invoicePdfUrl": "invoice_pdf_url",
    "paymentLink": "payment_link",
    "paymentStatus": "payment_status",
    "policyNumber": "policy_number",
    "policyPdfUrl": "policy_pdf_url",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

_STATUS_FIELDS = (
    "id", "userId", "vehicleNo", "itemName", "quantity", "rate", "supplierName", "partyName",
    "status", "invoiceNumber", "premiumAmount", "paymentStatus", "paymentLink", "policyNumber",
    "policyPdfUrl", "invoicePdfUrl", "createdAt", "adminTimestamp", "rejectionReason",
)

_CREATED_FIELDS = ("userId", "vehicleNo", "itemName", "quantity", "status", "premiumAmount", "createdAt")


def serialize_request(request: Any, fields: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    keys = fields or _REQUEST_FIELDS.keys()
    return {key: _json_value(getattr(request, _REQUEST_FIELDS[key], None)) for key in keys}


def serialize_requests(requests: Iterable[Any]) -> List[Dict[str, Any]]:
    return [serialize_request(r) for r in requests]


def serialize_status(request: Any) -> Dict[str, Any]:
    return serialize_request(request, _STATUS_FIELDS)


def serialize_created(request: Any) -> Dict[str, Any]:
    data = {"requestId": request.id}
    data.update(serialize_request(request, _CREATED_FIELDS))
    return data


def serialize_admin_action(action: Any) -> Dict[str, Any]:
    return {
        "id": action.id,
        "requestId": action.request_id,
        "action": _json_value(action.action),
        "notes": action.notes,
        "timestamp": _json_value(action.timestamp),
    }
