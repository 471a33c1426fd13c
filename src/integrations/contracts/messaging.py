"""
Messaging contracts.

Defines the request/response structures for outbound WhatsApp messages sent
through the chatbot provider, e.g.:
- a free-text message to a submitter
- a provider-side template message with parameters

These contracts must be used by both:
- clients/mocks/messaging.py (records messages, no network)
- clients/real_http/messaging.py (real API calls)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class DeliveryStatus(str, Enum):
    QUEUED = "QUEUED"
    SENT = "SENT"
    FAILED = "FAILED"


@dataclass
class OutboundMessage:
    to: str                              # digits-only phone number
    text: str
    media_url: Optional[str] = None      # image or PDF attachment
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TemplateMessage:
    to: str
    template: str
    parameters: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MessageResponse:
    to: str
    status: DeliveryStatus
    provider_message_id: str = ""
    message: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    raw: Dict[str, Any] = field(default_factory=dict)


def validate_outbound_message(message: OutboundMessage) -> List[str]:
    """
    Return a list of validation errors.
    Empty list means the message can be sent.
    """
    errors: List[str] = []
    if not message.to:
        errors.append("to is required")
    elif not message.to.isdigit():
        errors.append(f"to '{message.to}' must contain digits only")
    if not (message.text or "").strip():
        errors.append("text is required")
    return errors
