"""
Integrations layer.
This package contains all code used to communicate with external systems such as:
- The WhatsApp chatbot provider (outbound notifications to submitters)

Key rule:
- The request lifecycle MUST NOT call external APIs directly.
- It goes through NotificationService (src/integrations/policy), which wraps a
  messaging client (under src/integrations/clients).
- We use MOCK clients during development and swap to REAL_HTTP clients when
  provider credentials are configured.

Switching implementations:
- The selection of mock vs real clients happens in ONE place (src/api/main.py).
"""

from .contracts.messaging import (
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
