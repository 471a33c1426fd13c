from enum import Enum
from typing import Dict, FrozenSet


class RequestStatus(str, Enum):
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class AdminActionType(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


ALLOWED_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING_VERIFICATION: frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED}),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}


def parse_status(value) -> RequestStatus:
    """Raises ValueError for unknown statuses."""
    if isinstance(value, RequestStatus):
        return value
    return RequestStatus(str(value).strip().upper())


def can_transition(current, target) -> bool:
    return parse_status(target) in ALLOWED_TRANSITIONS[parse_status(current)]
