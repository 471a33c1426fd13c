from typing import Any, Optional

from pydantic import BaseModel, Field


class ApproveBody(BaseModel):
    adminNotes: Optional[str] = Field(default=None, description="Optional note stored with the decision (max 500 chars)")


class RejectBody(BaseModel):
    # Length is checked by validate_rejection_reason so the error envelope matches the other 400s
    rejectionReason: Optional[Any] = Field(default=None, description="Why the request was rejected (10-500 chars)")
