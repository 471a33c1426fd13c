"""
Chatbot-facing endpoints: request intake and status lookup.
"""

import logging

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from src.api.dependencies import get_db, get_lifecycle
from src.api.serializers import serialize_admin_action, serialize_created, serialize_request, serialize_status
from src.insurance.errors import RequestNotFoundError, SubmissionValidationError
from src.insurance.validation import normalize_user_id, validate_submission

logger = logging.getLogger(__name__)

api = APIRouter(prefix="/insurance")


@api.post("/request", status_code=status.HTTP_201_CREATED, tags=["Insurance"])
async def create_insurance_request(payload: dict = Body(...), lifecycle=Depends(get_lifecycle)):
    """Webhook target for the WhatsApp bot. Raises 400 / 409 through the app's exception handlers."""
    submission = validate_submission(payload)
    request = lifecycle.submit(submission)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "success": True,
            "message": "Insurance request created successfully",
            "data": serialize_created(request),
        },
    )


@api.get("/request/{request_id}", tags=["Insurance"])
async def get_insurance_request(request_id: str, db=Depends(get_db)):
    request = db.get_request(request_id)
    if request is None:
        raise RequestNotFoundError(request_id)
    data = serialize_request(request)
    data["adminActions"] = [serialize_admin_action(a) for a in db.list_admin_actions(request.id)]
    return {"success": True, "data": data}


@api.get("/status/{user_id}", tags=["Insurance"])
async def get_insurance_status(user_id: str, db=Depends(get_db)):
    normalized = normalize_user_id(user_id)
    if not normalized:
        raise SubmissionValidationError({"userId": "Invalid User ID format"}, message="Invalid User ID format")
    request = db.get_request_by_user_id(normalized)
    if request is None:
        raise RequestNotFoundError(normalized, message="No insurance request found for this user")
    return {"success": True, "data": serialize_status(request)}
