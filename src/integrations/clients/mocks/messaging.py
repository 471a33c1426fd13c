"""
Mock Messaging Client.

Purpose:
- Provides a fake WhatsApp integration used for development/testing
- Does NOT make any network calls
- Records every message so tests (and local runs) can inspect what was sent

Swap:
Replace this mock client with the real HTTP client in clients/real_http/messaging.py
when provider credentials are configured.
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Union

from src.integrations.contracts.messaging import (
    DeliveryStatus,
    MessageResponse,
    OutboundMessage,
    TemplateMessage,
    validate_outbound_message,
)

logger = logging.getLogger(__name__)


class MockMessagingClient:
    def __init__(self, fail_with: Optional[Exception] = None) -> None:
        self.sent: List[Union[OutboundMessage, TemplateMessage]] = []
        self.fail_with = fail_with

    async def send_message(self, message: OutboundMessage) -> MessageResponse:
        if self.fail_with is not None:
            raise self.fail_with
        errors = validate_outbound_message(message)
        if errors:
            raise ValueError("; ".join(errors))
        self.sent.append(message)
        logger.info("[mock] WhatsApp message to %s:\n%s", message.to, message.text)
        return MessageResponse(
            to=message.to,
            status=DeliveryStatus.SENT,
            provider_message_id=f"mock-{uuid.uuid4().hex[:12]}",
            message="Mock message recorded",
        )

    async def send_template(self, message: TemplateMessage) -> MessageResponse:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(message)
        return MessageResponse(
            to=message.to,
            status=DeliveryStatus.SENT,
            provider_message_id=f"mock-{uuid.uuid4().hex[:12]}",
            message=f"Mock template {message.template} recorded",
        )
