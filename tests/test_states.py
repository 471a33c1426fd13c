import pytest

from src.insurance.states import RequestStatus, can_transition, parse_status


@pytest.mark.parametrize("target", [RequestStatus.APPROVED, RequestStatus.REJECTED])
def test_pending_requests_can_be_decided(target):
    assert can_transition("PENDING_VERIFICATION", target)


@pytest.mark.parametrize("current", ["APPROVED", "REJECTED"])
@pytest.mark.parametrize("target", list(RequestStatus))
def test_decided_requests_are_final(current, target):
    assert not can_transition(current, target)


def test_pending_is_not_a_target():
    assert not can_transition(RequestStatus.PENDING_VERIFICATION, RequestStatus.PENDING_VERIFICATION)


def test_parse_status_is_case_insensitive():
    assert parse_status(" approved ") is RequestStatus.APPROVED
    with pytest.raises(ValueError):
        parse_status("DONE")
