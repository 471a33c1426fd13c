import re
from decimal import Decimal

import pytest

from src.insurance.errors import (
    DuplicateRequestError,
    InvalidTransitionError,
    InvoiceRenderError,
    RequestNotFoundError,
    SubmissionValidationError,
)
from src.insurance.lifecycle import RequestLifecycle, generate_invoice_number
from src.insurance.states import AdminActionType, PaymentStatus, RequestStatus
from src.insurance.validation import validate_submission
from src.integrations.clients.mocks.messaging import MockMessagingClient
from src.integrations.policy.notification_service import NotificationService


class FailingRenderer:
    def __init__(self):
        self.calls = 0

    async def render(self, request, invoice_number, premium_amount):
        self.calls += 1
        raise InvoiceRenderError("disk full", invoice_number=invoice_number)


def test_invoice_number_format():
    assert re.fullmatch(r"INV\d{13}[0-9A-F]{4}", generate_invoice_number())


def test_submit_creates_pending_request_with_premium(lifecycle, payload, db):
    req = lifecycle.submit(validate_submission(payload))

    assert req.status == RequestStatus.PENDING_VERIFICATION.value
    assert req.premium_amount == Decimal("8.87")
    assert req.invoice_number is None
    assert db.get_request_by_user_id("919876543210").id == req.id


def test_second_submission_for_same_user_is_rejected(lifecycle, payload):
    first = lifecycle.submit(validate_submission(payload))

    payload["userId"] = "919876543210"
    with pytest.raises(DuplicateRequestError) as exc:
        lifecycle.submit(validate_submission(payload))

    assert exc.value.request_id == first.id
    assert exc.value.status == RequestStatus.PENDING_VERIFICATION.value


@pytest.mark.asyncio
async def test_approve_issues_invoice_and_notifies(lifecycle, stored_request, messaging_client, settings, db):
    outcome = await lifecycle.approve(stored_request.id, admin_notes="Documents verified")

    req = outcome.request
    assert req.status == RequestStatus.APPROVED.value
    assert req.payment_status == PaymentStatus.PENDING.value
    assert req.admin_timestamp is not None
    assert req.admin_notes == "Documents verified"
    assert outcome.premium_amount == Decimal("8.87")
    assert outcome.payment_link == f"https://razorpay.me/temp-link-{outcome.invoice_number}"
    assert outcome.invoice_pdf_url == f"http://testserver/invoices/{outcome.invoice_number}.pdf"
    assert req.invoice_pdf_url == outcome.invoice_pdf_url
    assert outcome.side_effect_errors == []
    assert outcome.notified is True

    assert (settings.invoices_dir / f"{outcome.invoice_number}.pdf").is_file()

    [message] = messaging_client.sent
    assert message.to == "919876543210"
    assert outcome.invoice_number in message.text
    assert "₹8.87" in message.text
    assert message.media_url == outcome.invoice_pdf_url

    [action] = db.list_admin_actions(stored_request.id)
    assert action.action == AdminActionType.APPROVED.value
    assert action.notes == "Documents verified"


@pytest.mark.asyncio
async def test_second_approval_fails_without_side_effects(lifecycle, stored_request, messaging_client, db):
    first = await lifecycle.approve(stored_request.id)

    with pytest.raises(InvalidTransitionError) as exc:
        await lifecycle.approve(stored_request.id)

    assert exc.value.current_status == RequestStatus.APPROVED.value
    assert str(exc.value) == "Request is already APPROVED"
    assert len(messaging_client.sent) == 1
    assert db.get_request(stored_request.id).invoice_number == first.invoice_number
    assert len(db.list_admin_actions(stored_request.id)) == 1


@pytest.mark.asyncio
async def test_racing_decision_loses_at_the_conditional_update(lifecycle, stored_request, db):
    # Another admin rejects between our read and our write
    original_transition = db.transition

    def transition_after_competitor(request_id, expected_status, updates):
        original_transition(request_id, expected_status, {"status": RequestStatus.REJECTED.value})
        return original_transition(request_id, expected_status, updates)

    db.transition = transition_after_competitor

    with pytest.raises(InvalidTransitionError):
        await lifecycle.approve(stored_request.id)
    assert db.get_request(stored_request.id).status == RequestStatus.REJECTED.value


@pytest.mark.asyncio
async def test_approve_unknown_request(lifecycle):
    with pytest.raises(RequestNotFoundError):
        await lifecycle.approve("missing")


@pytest.mark.asyncio
async def test_render_failure_does_not_undo_approval(db, stored_request, settings):
    client = MockMessagingClient()
    lifecycle = RequestLifecycle(db, FailingRenderer(), NotificationService(client), settings)

    outcome = await lifecycle.approve(stored_request.id)

    assert db.get_request(stored_request.id).status == RequestStatus.APPROVED.value
    assert outcome.invoice_pdf_url is None
    assert len(outcome.side_effect_errors) == 1
    assert outcome.side_effect_errors[0].startswith("invoice:")
    # Notification still goes out, without the PDF
    assert outcome.notified is True
    assert client.sent[0].media_url is None


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_approval(db, stored_request, renderer, settings):
    client = MockMessagingClient(fail_with=ConnectionError("bot API down"))
    lifecycle = RequestLifecycle(db, renderer, NotificationService(client), settings)

    outcome = await lifecycle.approve(stored_request.id)

    stored = db.get_request(stored_request.id)
    assert stored.status == RequestStatus.APPROVED.value
    assert stored.invoice_pdf_url == outcome.invoice_pdf_url
    assert outcome.notified is False
    assert outcome.side_effect_errors[0].startswith("notification:")


@pytest.mark.asyncio
async def test_approval_reuses_stored_premium(lifecycle, db, stored_request):
    db.set_premium(stored_request.id, Decimal("5.00"))

    outcome = await lifecycle.approve(stored_request.id)

    assert outcome.premium_amount == Decimal("5.00")


@pytest.mark.asyncio
async def test_reject_records_reason_and_notifies(lifecycle, stored_request, messaging_client, db):
    outcome = await lifecycle.reject(stored_request.id, "Weighment slip is unreadable")

    req = outcome.request
    assert req.status == RequestStatus.REJECTED.value
    assert req.rejection_reason == "Weighment slip is unreadable"
    assert req.admin_timestamp is not None
    assert req.invoice_number is None
    assert outcome.notified is True
    assert "Weighment slip is unreadable" in messaging_client.sent[0].text

    [action] = db.list_admin_actions(stored_request.id)
    assert action.action == AdminActionType.REJECTED.value


@pytest.mark.asyncio
async def test_reject_validates_reason_before_touching_the_store(lifecycle, db):
    with pytest.raises(SubmissionValidationError):
        await lifecycle.reject("does-not-exist", "short")


@pytest.mark.asyncio
async def test_reject_after_approval_fails(lifecycle, stored_request):
    await lifecycle.approve(stored_request.id)

    with pytest.raises(InvalidTransitionError) as exc:
        await lifecycle.reject(stored_request.id, "Changed my mind about this one")
    assert exc.value.current_status == RequestStatus.APPROVED.value


@pytest.mark.asyncio
async def test_rejection_stands_when_notification_fails(db, stored_request, renderer, settings):
    client = MockMessagingClient(fail_with=RuntimeError("timeout"))
    lifecycle = RequestLifecycle(db, renderer, NotificationService(client), settings)

    outcome = await lifecycle.reject(stored_request.id, "Vehicle number does not match slip")

    assert db.get_request(stored_request.id).status == RequestStatus.REJECTED.value
    assert outcome.notified is False
    assert outcome.side_effect_errors
