"""Exceptions raised by the insurance request lifecycle.

The API layer maps each of these to an HTTP status; dependent-service errors
(`InvoiceRenderError`, `NotificationError`) are caught by the lifecycle after a
committed transition and only ever logged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(eq=False)
class SubmissionValidationError(Exception):
    """Malformed or missing input.

    Attributes:
        field_errors: mapping of field name -> human-readable error message.
        message: top-level message.
    """

    field_errors: Dict[str, str] = field(default_factory=dict)
    message: str = "Validation failed"

    def __str__(self) -> str:  # pragma: no cover
        return self.message


class ConsentRequiredError(ValueError):
    def __init__(self, message: str = "User consent is required to proceed") -> None:
        super().__init__(message)
        self.message = message


class DuplicateRequestError(Exception):
    """A request already exists for the normalized submitter identifier."""

    def __init__(self, user_id: str, request_id: Optional[str] = None, status: Optional[str] = None) -> None:
        super().__init__(f"Request with this User ID already exists: {user_id}")
        self.user_id = user_id
        self.request_id = request_id
        self.status = status


class RequestNotFoundError(LookupError):
    def __init__(self, request_id: str, message: str = "Insurance request not found") -> None:
        super().__init__(message)
        self.request_id = request_id
        self.message = message


class InvalidTransitionError(Exception):
    """The request is no longer in the state the transition requires."""

    def __init__(self, request_id: str, current_status: Any) -> None:
        status = getattr(current_status, "value", current_status)
        super().__init__(f"Request is already {status}")
        self.request_id = request_id
        self.current_status = status


class InvoiceRenderError(RuntimeError):
    def __init__(self, message: str, *, invoice_number: Optional[str] = None) -> None:
        super().__init__(message)
        self.invoice_number = invoice_number


class NotificationError(RuntimeError):
    def __init__(self, message: str, *, recipient: Optional[str] = None, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.recipient = recipient
        self.payload = payload or {}
