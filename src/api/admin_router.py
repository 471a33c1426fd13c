"""
Admin endpoints: review queue and approve / reject decisions.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from src.api.dependencies import get_db, get_lifecycle
from src.api.schemas import ApproveBody, RejectBody
from src.api.serializers import serialize_request, serialize_requests
from src.insurance.errors import SubmissionValidationError
from src.insurance.states import parse_status

logger = logging.getLogger(__name__)

api = APIRouter(prefix="/admin")


@api.get("/pending", tags=["Admin"])
async def list_pending_requests(db=Depends(get_db)):
    rows = db.list_pending()
    return {"success": True, "count": len(rows), "data": serialize_requests(rows)}


@api.get("/requests", tags=["Admin"])
async def list_requests(
    status: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db=Depends(get_db),
):
    status_value = None
    if status:
        try:
            status_value = parse_status(status).value
        except ValueError:
            raise SubmissionValidationError({"status": f"Unknown status: {status}"}, message="Invalid status filter")
    rows, total = db.list_requests(status=status_value, limit=limit, offset=offset)
    return {"success": True, "count": len(rows), "total": total, "data": serialize_requests(rows)}


@api.post("/approve/{request_id}", tags=["Admin"])
async def approve_request(
    request_id: str,
    body: Optional[ApproveBody] = Body(default=None),
    lifecycle=Depends(get_lifecycle),
):
    outcome = await lifecycle.approve(request_id, admin_notes=body.adminNotes if body else None)
    return {
        "success": True,
        "message": "Insurance request approved successfully",
        "data": {
            "requestId": outcome.request.id,
            "invoiceNumber": outcome.invoice_number,
            "premiumAmount": float(outcome.premium_amount),
            "paymentLink": outcome.payment_link,
            "invoicePdfUrl": outcome.invoice_pdf_url,
            "status": outcome.request.status,
            "warnings": outcome.side_effect_errors,
        },
    }


@api.post("/reject/{request_id}", tags=["Admin"])
async def reject_request(request_id: str, body: RejectBody = Body(...), lifecycle=Depends(get_lifecycle)):
    outcome = await lifecycle.reject(request_id, body.rejectionReason)
    data = serialize_request(outcome.request, ("id", "status", "rejectionReason", "adminTimestamp"))
    data["warnings"] = outcome.side_effect_errors
    return {"success": True, "message": "Insurance request rejected successfully", "data": data}
