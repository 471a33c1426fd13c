"""
Insurance request domain: validation, premium rules, states and the lifecycle
that moves a request from submission to an admin decision.
"""

from .premium import calculate_premium
from .states import PaymentStatus, RequestStatus
from .validation import InsuranceSubmission, validate_submission

__all__ = ["calculate_premium", "InsuranceSubmission", "PaymentStatus", "RequestStatus", "validate_submission"]
