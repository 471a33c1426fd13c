"""
Mock integration clients.

These clients return fake (but realistic) responses without calling any external API.
They are used when:
- Provider credentials are not configured
- We want to test the approval/rejection flow end-to-end without external dependencies

Important:
- Mock clients must follow the SAME interface as real HTTP clients.
- Mock clients should return data shaped according to src/integrations/contracts/*
"""

from .messaging import MockMessagingClient

__all__ = ["MockMessagingClient"]
