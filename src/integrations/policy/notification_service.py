"""
Notification Service

Builds the WhatsApp messages sent to a submitter after an admin decision and
hands them to the configured messaging client (mock or real).
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

from src.insurance.errors import NotificationError
from src.integrations.contracts.messaging import DeliveryStatus, MessageResponse, OutboundMessage

logger = logging.getLogger(__name__)


def format_rupees(amount: Any) -> str:
    return f"₹{Decimal(str(amount)).quantize(Decimal('0.01')):,}"


def approval_message(invoice_number: str, premium_amount: Any, payment_link: str) -> str:
    return (
        "🎉 *Your Insurance Request is APPROVED!*\n\n"
        f"Invoice Number: {invoice_number}\n"
        f"Premium Amount: {format_rupees(premium_amount)}\n\n"
        "Please complete payment using this link:\n"
        f"{payment_link}\n\n"
        "After payment, your policy will be issued within 24 hours."
    )


def rejection_message(reason: str) -> str:
    return (
        "❌ *Your Insurance Request has been REJECTED*\n\n"
        f"Reason: {reason}\n\n"
        "Please contact support for more information or submit a new request with correct details."
    )


class NotificationService:
    def __init__(self, client):
        # client: MockMessagingClient or RealMessagingClient
        self.client = client

    async def send(self, to: str, text: str, media_url: Optional[str] = None, **metadata) -> MessageResponse:
        message = OutboundMessage(to=to, text=text, media_url=media_url, metadata=metadata)
        try:
            response = await self.client.send_message(message)
        except Exception as e:
            logger.error("Failed to send WhatsApp message to %s: %s", to, e)
            raise NotificationError(f"Failed to send message to {to}: {e}", recipient=to) from e
        if response.status == DeliveryStatus.FAILED:
            logger.error("Provider reported failed delivery to %s: %s", to, response.message)
            raise NotificationError(
                f"Provider rejected message to {to}: {response.message}", recipient=to, payload=response.raw
            )
        return response

    async def notify_approved(
        self,
        request,
        invoice_number: str,
        premium_amount: Any,
        payment_link: str,
        invoice_pdf_url: Optional[str] = None,
    ) -> MessageResponse:
        text = approval_message(invoice_number, premium_amount, payment_link)
        return await self.send(
            request.user_id,
            text,
            media_url=invoice_pdf_url,
            request_id=request.id,
            invoice_number=invoice_number,
        )

    async def notify_rejected(self, request, reason: str) -> MessageResponse:
        return await self.send(request.user_id, rejection_message(reason), request_id=request.id)
