"""
Leave request status transitions and the guards around them.

pending -> approved | rejected. Approved and rejected are final; only an admin
may delete a request once it has left pending.
"""

from typing import Dict, FrozenSet

from app.auth.schemas import CurrentUser
from app.core.enums import LeaveStatus, UserRole, is_privileged
from app.core.exceptions import ForbiddenError, InvalidStateError
from app.core.models import LeaveRequest


TRANSITIONS: Dict[LeaveStatus, FrozenSet[LeaveStatus]] = {
    LeaveStatus.PENDING: frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED}),
    LeaveStatus.APPROVED: frozenset(),
    LeaveStatus.REJECTED: frozenset(),
}


def next_status(current: str, target: LeaveStatus) -> LeaveStatus:
    """Return ``target`` if the transition is allowed, else raise InvalidStateError."""
    if target not in TRANSITIONS.get(LeaveStatus(current), frozenset()):
        if current != LeaveStatus.PENDING.value:
            raise InvalidStateError("Only pending requests can be approved or rejected")
        raise InvalidStateError(f"Cannot change a {current} request to {target.value}")
    return target


def requires_conflict_check(target: LeaveStatus) -> bool:
    # Rejecting can never create a scheduling clash.
    return target == LeaveStatus.APPROVED


def ensure_can_decide(actor: CurrentUser) -> None:
    """Only privileged roles approve or reject, including on their own requests."""
    if not is_privileged(actor.role):
        raise ForbiddenError("Only HOD, Dean or Admin can approve or reject leave requests")


def ensure_can_view(req: LeaveRequest, actor: CurrentUser) -> None:
    if req.user_id != actor.id and not is_privileged(actor.role):
        raise ForbiddenError("You can only view your own leave requests")


def ensure_can_edit(req: LeaveRequest, actor: CurrentUser) -> None:
    is_admin = actor.role == UserRole.ADMIN.value
    if req.user_id != actor.id and not is_admin:
        raise ForbiddenError("You can only modify your own leave requests")
    if req.status != LeaveStatus.PENDING.value:
        raise InvalidStateError("Only pending requests can be modified")


def ensure_can_delete(req: LeaveRequest, actor: CurrentUser) -> None:
    is_admin = actor.role == UserRole.ADMIN.value
    if req.user_id != actor.id and not is_admin:
        raise ForbiddenError("You can only delete your own leave requests")
    if req.status != LeaveStatus.PENDING.value and not is_admin:
        raise InvalidStateError("Only pending requests can be deleted")
