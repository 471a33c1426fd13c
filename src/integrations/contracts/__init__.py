"""
Contracts (data models).

This folder defines the request/response shapes for external integrations,
currently the outbound messaging provider used to notify submitters.

Both mock and real HTTP clients should use these contracts.
"""

from .messaging import (
    DeliveryStatus,
    MessageResponse,
    OutboundMessage,
    TemplateMessage,
    validate_outbound_message,
)

__all__ = [
    "DeliveryStatus",
    "MessageResponse",
    "OutboundMessage",
    "TemplateMessage",
    "validate_outbound_message",
]
