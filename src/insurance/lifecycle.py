"""
Insurance request lifecycle.

PENDING_VERIFICATION -> APPROVED | REJECTED, nothing else. Every status change
is a conditional update on the stored status, so concurrent admin decisions on
the same request cannot both win. Invoice rendering and WhatsApp notification
run only after the decision is committed, and their failures are reported on
the outcome instead of undoing the decision.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional

from src.insurance.errors import InvalidTransitionError, RequestNotFoundError
from src.insurance.premium import calculate_premium, finalize_premium
from src.insurance.states import AdminActionType, PaymentStatus, RequestStatus, can_transition
from src.insurance.validation import InsuranceSubmission, validate_admin_notes, validate_rejection_reason
from src.invoices.renderer import invoice_url

logger = logging.getLogger(__name__)


def generate_invoice_number() -> str:
    """INV<epoch-ms><4 hex>; the suffix keeps same-millisecond approvals apart."""
    return f"INV{int(time.time() * 1000)}{secrets.token_hex(2).upper()}"


def payment_link_for(base: str, invoice_number: str) -> str:
    return f"{base}{invoice_number}"


@dataclass
class ApprovalOutcome:
    request: Any
    invoice_number: str
    premium_amount: Decimal
    payment_link: str
    invoice_pdf_url: Optional[str] = None
    notified: bool = False
    side_effect_errors: List[str] = field(default_factory=list)


@dataclass
class RejectionOutcome:
    request: Any
    notified: bool = False
    side_effect_errors: List[str] = field(default_factory=list)


class RequestLifecycle:
    def __init__(self, db, renderer, notifier, settings):
        self.db = db
        self.renderer = renderer
        self.notifier = notifier
        self.settings = settings

    def submit(self, submission: InsuranceSubmission):
        """Persist a validated submission as PENDING_VERIFICATION.

        Raises:
            DuplicateRequestError: a request already exists for this user id.
        """
        premium = calculate_premium(submission.quantity, submission.rate)
        data = {
            "user_id": submission.user_id,
            "timestamp": submission.timestamp,
            "item_name": submission.item_name,
            "quantity": submission.quantity,
            "vehicle_no": submission.vehicle_no,
            "rate": submission.rate,
            "supplier_name": submission.supplier_name,
            "supplier_place": submission.supplier_place,
            "party_name": submission.party_name,
            "party_address": submission.party_address,
            "transporter_name": submission.transporter_name,
            "cash_commission": submission.cash_commission,
            "invoice_type": submission.invoice_type,
            "kanta_parchi_image": submission.kanta_parchi_image,
            "consent": True,
            "premium_amount": premium,
            "status": RequestStatus.PENDING_VERIFICATION.value,
        }
        request = self.db.insert_request(data)
        logger.info("Insurance request %s created for user %s (premium %s)", request.id, request.user_id, premium)
        return request

    def _load_pending(self, request_id: str, target: RequestStatus):
        request = self.db.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        if not can_transition(request.status, target):
            raise InvalidTransitionError(request.id, request.status)
        return request

    async def approve(self, request_id: str, admin_notes: Optional[str] = None) -> ApprovalOutcome:
        admin_notes = validate_admin_notes(admin_notes)
        request = self._load_pending(request_id, RequestStatus.APPROVED)

        premium = finalize_premium(request.premium_amount, request.quantity, request.rate)
        invoice_number = generate_invoice_number()
        payment_link = payment_link_for(self.settings.payment_link_base, invoice_number)

        request = self.db.transition(
            request.id,
            RequestStatus.PENDING_VERIFICATION.value,
            {
                "status": RequestStatus.APPROVED.value,
                "admin_action": AdminActionType.APPROVED.value,
                "admin_timestamp": datetime.now(timezone.utc),
                "admin_notes": admin_notes,
                "premium_amount": premium,
                "invoice_number": invoice_number,
                "payment_link": payment_link,
                "payment_status": PaymentStatus.PENDING.value,
            },
        )
        self.db.add_admin_action(request.id, AdminActionType.APPROVED.value, admin_notes)
        logger.info("Request %s approved, invoice %s, premium %s", request.id, invoice_number, premium)

        outcome = ApprovalOutcome(
            request=request,
            invoice_number=invoice_number,
            premium_amount=premium,
            payment_link=payment_link,
        )

        # Decision is committed from here on
        try:
            await self.renderer.render(request, invoice_number, premium)
            pdf_url = invoice_url(self.settings.public_url, invoice_number)
            outcome.request = self.db.update_request(request.id, {"invoice_pdf_url": pdf_url}) or request
            outcome.invoice_pdf_url = pdf_url
        except Exception as e:
            logger.warning("Invoice generation failed for request %s (%s): %s", request.id, invoice_number, e)
            outcome.side_effect_errors.append(f"invoice: {e}")

        try:
            await self.notifier.notify_approved(
                outcome.request,
                invoice_number,
                premium,
                payment_link,
                invoice_pdf_url=outcome.invoice_pdf_url,
            )
            outcome.notified = True
        except Exception as e:
            logger.warning("Approval notification failed for request %s: %s", request.id, e)
            outcome.side_effect_errors.append(f"notification: {e}")

        return outcome

    async def reject(self, request_id: str, reason: Any) -> RejectionOutcome:
        reason = validate_rejection_reason(reason)
        request = self._load_pending(request_id, RequestStatus.REJECTED)

        request = self.db.transition(
            request.id,
            RequestStatus.PENDING_VERIFICATION.value,
            {
                "status": RequestStatus.REJECTED.value,
                "admin_action": AdminActionType.REJECTED.value,
                "admin_timestamp": datetime.now(timezone.utc),
                "rejection_reason": reason,
            },
        )
        self.db.add_admin_action(request.id, AdminActionType.REJECTED.value, reason)
        logger.info("Request %s rejected", request.id)

        outcome = RejectionOutcome(request=request)
        try:
            await self.notifier.notify_rejected(request, reason)
            outcome.notified = True
        except Exception as e:
            logger.warning("Rejection notification failed for request %s: %s", request.id, e)
            outcome.side_effect_errors.append(f"notification: {e}")
        return outcome
