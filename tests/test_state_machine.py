"""Unit tests for leave status transitions and their guards."""

import pytest

from app.api.v1.leaves import state_machine
from app.auth.schemas import CurrentUser
from app.core.enums import LeaveStatus
from app.core.exceptions import ForbiddenError, InvalidStateError
from app.core.models import LeaveRequest


def _actor(user_id: int, role: str) -> CurrentUser:
    return CurrentUser(id=user_id, role=role, department="Math", full_name="Actor", email="actor@example.com")


def _request(owner_id: int, status: LeaveStatus) -> LeaveRequest:
    return LeaveRequest(id=1, user_id=owner_id, status=status.value)


@pytest.mark.parametrize("target", [LeaveStatus.APPROVED, LeaveStatus.REJECTED])
def test_pending_can_be_decided(target: LeaveStatus) -> None:
    assert state_machine.next_status("pending", target) == target


@pytest.mark.parametrize("current", ["approved", "rejected"])
def test_decided_requests_are_final(current: str) -> None:
    with pytest.raises(InvalidStateError):
        state_machine.next_status(current, LeaveStatus.APPROVED)
    with pytest.raises(InvalidStateError):
        state_machine.next_status(current, LeaveStatus.REJECTED)


def test_pending_to_pending_is_not_a_transition() -> None:
    with pytest.raises(InvalidStateError):
        state_machine.next_status("pending", LeaveStatus.PENDING)


def test_only_approval_needs_conflict_check() -> None:
    assert state_machine.requires_conflict_check(LeaveStatus.APPROVED) is True
    assert state_machine.requires_conflict_check(LeaveStatus.REJECTED) is False


def test_staff_cannot_decide() -> None:
    with pytest.raises(ForbiddenError):
        state_machine.ensure_can_decide(_actor(1, "staff"))


@pytest.mark.parametrize("role", ["hod", "dean", "admin"])
def test_privileged_roles_can_decide(role: str) -> None:
    state_machine.ensure_can_decide(_actor(1, role))


def test_owner_deletes_pending() -> None:
    state_machine.ensure_can_delete(_request(7, LeaveStatus.PENDING), _actor(7, "staff"))


def test_owner_cannot_delete_approved() -> None:
    with pytest.raises(InvalidStateError):
        state_machine.ensure_can_delete(_request(7, LeaveStatus.APPROVED), _actor(7, "staff"))


def test_hod_cannot_delete_someone_elses_request() -> None:
    with pytest.raises(ForbiddenError):
        state_machine.ensure_can_delete(_request(7, LeaveStatus.PENDING), _actor(8, "hod"))


@pytest.mark.parametrize("status", list(LeaveStatus))
def test_admin_deletes_in_any_status(status: LeaveStatus) -> None:
    state_machine.ensure_can_delete(_request(7, status), _actor(1, "admin"))


def test_staff_cannot_view_other_requests() -> None:
    with pytest.raises(ForbiddenError):
        state_machine.ensure_can_view(_request(7, LeaveStatus.PENDING), _actor(8, "staff"))


def test_reason_edit_only_while_pending() -> None:
    with pytest.raises(InvalidStateError):
        state_machine.ensure_can_edit(_request(7, LeaveStatus.REJECTED), _actor(7, "staff"))
