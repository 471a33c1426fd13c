"""
Lightweight in-memory PostgresDB replacement for local development and tests.

Implements the same interface as src.database.postgres_real so the API can run
without a real database. A single lock stands in for the unique index on
user_id and for conditional (compare-and-swap) status updates. It is NOT
intended for production use: nothing survives a restart.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from decimal import Decimal
from threading import RLock
from typing import Any, Dict, Iterator, List, Optional, Tuple
import uuid

from src.insurance.errors import DuplicateRequestError, InvalidTransitionError, RequestNotFoundError
from src.insurance.states import RequestStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class InsuranceRequest:
    id: str
    user_id: str
    item_name: str
    quantity: int
    vehicle_no: str
    timestamp: datetime = field(default_factory=_utcnow)
    supplier_name: Optional[str] = None
    supplier_place: Optional[str] = None
    party_name: Optional[str] = None
    party_address: Optional[str] = None
    rate: Optional[Decimal] = None
    transporter_name: Optional[str] = None
    cash_commission: Optional[str] = None
    invoice_type: Optional[str] = None
    kanta_parchi_image: Optional[str] = None
    consent: bool = False
    status: str = RequestStatus.PENDING_VERIFICATION.value
    premium_amount: Optional[Decimal] = None
    admin_action: Optional[str] = None
    admin_timestamp: Optional[datetime] = None
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_pdf_url: Optional[str] = None
    payment_link: Optional[str] = None
    payment_status: Optional[str] = None
    policy_number: Optional[str] = None
    policy_pdf_url: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass
class AdminAction:
    id: str
    request_id: str
    action: str
    notes: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)


_REQUEST_FIELDS = {f.name for f in fields(InsuranceRequest)}


class PostgresDB:
    """In-memory store. Returned objects are copies; mutate through the methods."""

    def __init__(self) -> None:
        self._requests: Dict[str, InsuranceRequest] = {}
        self._by_user: Dict[str, str] = {}
        self._invoice_numbers: Dict[str, str] = {}
        self._actions: Dict[str, AdminAction] = {}
        self._lock = RLock()

    def create_tables(self) -> None:
        return None

    # ------------------------------------------------------------------ #
    # Insurance requests
    # ------------------------------------------------------------------ #
    def insert_request(self, data: Dict[str, Any]) -> InsuranceRequest:
        values = {k: v for k, v in (data or {}).items() if k in _REQUEST_FIELDS}
        values.setdefault("id", str(uuid.uuid4()))
        now = _utcnow()
        values.setdefault("created_at", now)
        values.setdefault("updated_at", now)
        req = InsuranceRequest(**values)
        with self._lock:
            existing_id = self._by_user.get(req.user_id)
            if existing_id is not None:
                existing = self._requests[existing_id]
                raise DuplicateRequestError(req.user_id, request_id=existing.id, status=existing.status)
            self._requests[req.id] = req
            self._by_user[req.user_id] = req.id
            return replace(req)

    def get_request(self, request_id: str) -> Optional[InsuranceRequest]:
        with self._lock:
            req = self._requests.get(str(request_id))
            return replace(req) if req else None

    def get_request_by_user_id(self, user_id: str) -> Optional[InsuranceRequest]:
        with self._lock:
            request_id = self._by_user.get(str(user_id))
            return replace(self._requests[request_id]) if request_id else None

    def list_requests(
        self,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[InsuranceRequest], int]:
        with self._lock:
            rows = [r for r in self._requests.values() if status is None or r.status == status]
            rows.sort(key=lambda r: r.created_at, reverse=True)
            total = len(rows)
            return [replace(r) for r in rows[offset: offset + limit]], total

    def list_pending(self) -> List[InsuranceRequest]:
        with self._lock:
            rows, _ = self.list_requests(status=RequestStatus.PENDING_VERIFICATION.value, limit=len(self._requests))
            return rows

    def transition(self, request_id: str, expected_status: str, updates: Dict[str, Any]) -> InsuranceRequest:
        """Apply `updates` only if the stored status still equals `expected_status`."""
        with self._lock:
            req = self._requests.get(str(request_id))
            if req is None:
                raise RequestNotFoundError(str(request_id))
            if req.status != expected_status:
                raise InvalidTransitionError(req.id, req.status)
            invoice_number = updates.get("invoice_number")
            if invoice_number and self._invoice_numbers.get(invoice_number, req.id) != req.id:
                raise ValueError(f"Duplicate invoice number {invoice_number}")
            updated = self._apply(req, updates)
            if invoice_number:
                self._invoice_numbers[invoice_number] = req.id
            return updated

    def update_request(self, request_id: str, updates: Dict[str, Any]) -> Optional[InsuranceRequest]:
        """Non-status enrichment (e.g. attaching the invoice PDF URL)."""
        updates = {k: v for k, v in (updates or {}).items() if k != "status"}
        with self._lock:
            req = self._requests.get(str(request_id))
            if req is None:
                return None
            return self._apply(req, updates)

    def set_premium(self, request_id: str, premium_amount: Decimal) -> Optional[InsuranceRequest]:
        return self.update_request(request_id, {"premium_amount": premium_amount})

    def iter_all_requests(self) -> Iterator[InsuranceRequest]:
        with self._lock:
            snapshot = [replace(r) for r in self._requests.values()]
        return iter(snapshot)

    def _apply(self, req: InsuranceRequest, updates: Dict[str, Any]) -> InsuranceRequest:
        for k, v in updates.items():
            if k in _REQUEST_FIELDS and k not in ("id", "user_id", "created_at"):
                setattr(req, k, v)
        req.updated_at = _utcnow()
        return replace(req)

    # ------------------------------------------------------------------ #
    # Admin decision history
    # ------------------------------------------------------------------ #
    def add_admin_action(self, request_id: str, action: str, notes: Optional[str] = None) -> AdminAction:
        a = AdminAction(id=str(uuid.uuid4()), request_id=str(request_id), action=action, notes=notes)
        with self._lock:
            self._actions[a.id] = a
        return replace(a)

    def list_admin_actions(self, request_id: str) -> List[AdminAction]:
        with self._lock:
            rows = [a for a in self._actions.values() if a.request_id == str(request_id)]
        rows.sort(key=lambda a: a.timestamp, reverse=True)
        return [replace(a) for a in rows]
