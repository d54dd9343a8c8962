"""Leave requests: create, list, update (approve/reject/edit), delete; leave types CRUD."""

import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import status
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.schemas import CurrentUser
from app.core.config import settings
from app.core.enums import LeaveAuditAction, LeaveStatus, is_privileged
from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ServiceError
from app.core.models import LeaveAuditLog, LeaveRequest, LeaveType

from . import state_machine
from .balances import deduct_balance, restore_balance
from .conflicts import check_department_conflicts, get_user_department
from .locking import department_lock
from .schemas import (
    DeleteResponse,
    LeaveRequestCreate,
    LeaveRequestResponse,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeResponse,
    LeaveTypeUpdate,
)

logger = logging.getLogger(__name__)


def _request_query():
    return (
        select(LeaveRequest, User.full_name, User.department, LeaveType.name)
        .join(User, LeaveRequest.user_id == User.id)
        .outerjoin(LeaveType, LeaveRequest.leave_type_id == LeaveType.id)
    )


def _request_to_response(
    r: LeaveRequest,
    full_name: Optional[str] = None,
    department: Optional[str] = None,
    leave_type: Optional[str] = None,
) -> LeaveRequestResponse:
    return LeaveRequestResponse(
        id=r.id,
        user_id=r.user_id,
        full_name=full_name,
        department=department,
        leave_type_id=r.leave_type_id,
        leave_type=leave_type,
        start_date=r.start_date,
        end_date=r.end_date,
        total_days=r.total_days,
        reason=r.reason,
        status=r.status,
        decided_by=r.decided_by,
        decided_at=r.decided_at,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


async def _load_response(db: AsyncSession, leave_id: int) -> LeaveRequestResponse:
    row = (
        await db.execute(
            _request_query()
            .where(LeaveRequest.id == leave_id)
            .execution_options(populate_existing=True)
        )
    ).one_or_none()
    if row is None:
        raise NotFoundError("Leave request not found")
    return _request_to_response(*row)


async def _get_request_or_404(db: AsyncSession, leave_id: int, for_update: bool = False) -> LeaveRequest:
    stmt = select(LeaveRequest).where(LeaveRequest.id == leave_id).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    req = (await db.execute(stmt)).scalar_one_or_none()
    if not req:
        raise NotFoundError("Leave request not found")
    return req


async def _log_leave_audit(
    db: AsyncSession,
    leave_request_id: int,
    action: LeaveAuditAction,
    performed_by: int,
    performed_by_role: str,
    remarks: Optional[str] = None,
) -> None:
    entry = LeaveAuditLog(
        leave_request_id=leave_request_id,
        action=action.value,
        performed_by=performed_by,
        performed_by_role=performed_by_role,
        remarks=remarks,
    )
    db.add(entry)


def inclusive_days(start_date: date, end_date: date) -> int:
    return (end_date - start_date).days + 1


async def create_leave_request(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: LeaveRequestCreate,
) -> LeaveRequestResponse:
    """Create a pending request for the current user, refusing up front on a department conflict."""
    lt = await db.get(LeaveType, payload.leave_type_id)
    if not lt:
        raise NotFoundError("Leave type not found")

    if settings.leave_conflict_check_on_create:
        result = await check_department_conflicts(db, current_user.id, payload.start_date, payload.end_date)
        if result.has_conflict:
            logger.info(
                "Leave request by user %s refused: %d conflict(s) in department %s",
                current_user.id,
                len(result.conflicts),
                result.department,
            )
            raise ConflictError(
                "Cannot submit leave request. Another employee from your department "
                f"({result.department}) already has approved leave during this period.",
                department=result.department,
                conflicts=[c.model_dump(mode="json") for c in result.conflicts],
            )

    req = LeaveRequest(
        user_id=current_user.id,
        leave_type_id=lt.id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        total_days=inclusive_days(payload.start_date, payload.end_date),
        reason=payload.reason.strip(),
        status=LeaveStatus.PENDING.value,
    )
    db.add(req)
    await db.flush()
    await _log_leave_audit(db, req.id, LeaveAuditAction.CREATED, current_user.id, current_user.role)
    await db.commit()
    logger.info("Leave request %s created by user %s", req.id, current_user.id)
    return await _load_response(db, req.id)


async def list_leave_requests(
    db: AsyncSession,
    current_user: CurrentUser,
    status_filter: Optional[LeaveStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    department: Optional[str] = None,
) -> List[LeaveRequestResponse]:
    """All requests for privileged roles, own requests for staff. Dates filter by overlap (calendar view)."""
    q = _request_query()
    if not is_privileged(current_user.role):
        q = q.where(LeaveRequest.user_id == current_user.id)
    elif department:
        q = q.where(User.department == department)
    if status_filter is not None:
        q = q.where(LeaveRequest.status == status_filter.value)
    if end_date is not None:
        q = q.where(LeaveRequest.start_date <= end_date)
    if start_date is not None:
        q = q.where(LeaveRequest.end_date >= start_date)
    q = q.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
    result = await db.execute(q)
    return [_request_to_response(*row) for row in result.all()]


async def list_leave_history(db: AsyncSession, current_user: CurrentUser) -> List[LeaveRequestResponse]:
    """The current user's decided (approved or rejected) requests."""
    result = await db.execute(
        _request_query()
        .where(
            LeaveRequest.user_id == current_user.id,
            LeaveRequest.status != LeaveStatus.PENDING.value,
        )
        .order_by(LeaveRequest.start_date.desc())
    )
    return [_request_to_response(*row) for row in result.all()]


async def get_leave_request(db: AsyncSession, current_user: CurrentUser, leave_id: int) -> LeaveRequestResponse:
    req = await _get_request_or_404(db, leave_id)
    state_machine.ensure_can_view(req, current_user)
    return await _load_response(db, leave_id)


async def update_leave_request(
    db: AsyncSession,
    current_user: CurrentUser,
    leave_id: int,
    payload: LeaveRequestUpdate,
) -> LeaveRequestResponse:
    req = await _get_request_or_404(db, leave_id)
    if payload.status is not None:
        state_machine.ensure_can_decide(current_user)
        if state_machine.requires_conflict_check(payload.status):
            return await approve_leave_request(db, current_user, req, remarks=payload.remarks)
        return await reject_leave_request(db, current_user, req, remarks=payload.remarks)

    state_machine.ensure_can_edit(req, current_user)
    # Guarded on status: the row may have been decided since it was read.
    result = await db.execute(
        update(LeaveRequest)
        .where(LeaveRequest.id == leave_id, LeaveRequest.status == LeaveStatus.PENDING.value)
        .values(reason=payload.reason.strip())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        req = await _get_request_or_404(db, leave_id)
        state_machine.ensure_can_edit(req, current_user)
        raise InvalidStateError("Only pending requests can be modified")
    await _log_leave_audit(db, req.id, LeaveAuditAction.UPDATED, current_user.id, current_user.role)
    await db.commit()
    return await _load_response(db, req.id)


async def approve_leave_request(
    db: AsyncSession,
    current_user: CurrentUser,
    req: LeaveRequest,
    remarks: Optional[str] = None,
) -> LeaveRequestResponse:
    """
    pending -> approved. The conflict re-check, balance deduction and status
    update share one transaction under the owner's department lock, so two
    conflicting approvals cannot both succeed.

    The lock is keyed by the department read before locking. Under the lock the
    owner's row is re-read FOR UPDATE; if the department changed in between,
    the lock is released and taken again for the new department.
    """
    state_machine.ensure_can_decide(current_user)
    leave_id = req.id
    owner_id = req.user_id
    department = await get_user_department(db, owner_id)

    while True:
        async with department_lock(db, department):
            try:
                current = await get_user_department(db, owner_id, for_update=True)
                if current == department:
                    await _apply_approval(db, current_user, leave_id, remarks)
                    await db.commit()
                    break
                await db.rollback()
            except Exception:
                await db.rollback()
                raise
        logger.info("Owner of leave request %s moved from %s to %s; retrying", leave_id, department, current)
        department = current

    logger.info("Leave request %s approved by user %s", leave_id, current_user.id)
    return await _load_response(db, leave_id)


async def _apply_approval(
    db: AsyncSession,
    current_user: CurrentUser,
    leave_id: int,
    remarks: Optional[str],
) -> None:
    req = await _get_request_or_404(db, leave_id, for_update=True)
    state_machine.next_status(req.status, LeaveStatus.APPROVED)

    result = await check_department_conflicts(db, req.user_id, req.start_date, req.end_date)
    if result.has_conflict:
        logger.warning(
            "Approval of leave request %s blocked: %d conflict(s) in department %s",
            leave_id,
            len(result.conflicts),
            result.department,
        )
        raise ConflictError(
            "Cannot approve leave request. Another employee from the same department "
            f"({result.department}) already has approved leave during this period.",
            department=result.department,
            conflicts=[c.model_dump(mode="json") for c in result.conflicts],
        )

    await deduct_balance(db, req.user_id, req.leave_type_id, req.total_days)

    req.status = LeaveStatus.APPROVED.value
    req.decided_by = current_user.id
    req.decided_at = datetime.utcnow()
    await _log_leave_audit(db, req.id, LeaveAuditAction.APPROVED, current_user.id, current_user.role, remarks=remarks)


async def reject_leave_request(
    db: AsyncSession,
    current_user: CurrentUser,
    req: LeaveRequest,
    remarks: Optional[str] = None,
) -> LeaveRequestResponse:
    state_machine.ensure_can_decide(current_user)
    req = await _get_request_or_404(db, req.id, for_update=True)
    state_machine.next_status(req.status, LeaveStatus.REJECTED)

    req.status = LeaveStatus.REJECTED.value
    req.decided_by = current_user.id
    req.decided_at = datetime.utcnow()
    await _log_leave_audit(db, req.id, LeaveAuditAction.REJECTED, current_user.id, current_user.role, remarks=remarks)
    await db.commit()
    logger.info("Leave request %s rejected by user %s", req.id, current_user.id)
    return await _load_response(db, req.id)


async def delete_leave_request(db: AsyncSession, current_user: CurrentUser, leave_id: int) -> DeleteResponse:
    """Owner deletes while pending; admin deletes in any status (approved days are given back)."""
    req = await _get_request_or_404(db, leave_id)
    state_machine.ensure_can_delete(req, current_user)
    seen_status = req.status

    # Delete only the row in the status that was checked; a decision may have committed since.
    result = await db.execute(
        delete(LeaveRequest)
        .where(LeaveRequest.id == leave_id, LeaveRequest.status == seen_status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        req = await _get_request_or_404(db, leave_id)
        state_machine.ensure_can_delete(req, current_user)
        raise InvalidStateError("Leave request was decided while being deleted; please retry")

    if seen_status == LeaveStatus.APPROVED.value:
        await restore_balance(db, req.user_id, req.leave_type_id, req.total_days)
    await _log_leave_audit(
        db,
        leave_id,
        LeaveAuditAction.DELETED,
        current_user.id,
        current_user.role,
        remarks=f"status was {seen_status}",
    )
    await db.commit()
    logger.info("Leave request %s deleted by user %s", leave_id, current_user.id)
    return DeleteResponse(success=True, message="Leave request deleted successfully")


# ----- Leave types -----
def _type_to_response(lt: LeaveType) -> LeaveTypeResponse:
    return LeaveTypeResponse(
        id=lt.id,
        name=lt.name,
        description=lt.description,
        default_days=lt.default_days,
        created_at=lt.created_at,
    )


async def list_leave_types(db: AsyncSession) -> List[LeaveTypeResponse]:
    result = await db.execute(select(LeaveType).order_by(LeaveType.name))
    return [_type_to_response(lt) for lt in result.scalars().all()]


async def _ensure_unique_type_name(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> None:
    q = select(LeaveType.id).where(func.lower(LeaveType.name) == name.lower())
    if exclude_id is not None:
        q = q.where(LeaveType.id != exclude_id)
    if (await db.execute(q)).first():
        raise ServiceError(f"Leave type '{name}' already exists", status.HTTP_400_BAD_REQUEST)


async def create_leave_type(db: AsyncSession, payload: LeaveTypeCreate) -> LeaveTypeResponse:
    name = payload.name.strip()
    await _ensure_unique_type_name(db, name)
    lt = LeaveType(
        name=name,
        description=payload.description,
        default_days=payload.default_days,
    )
    db.add(lt)
    await db.commit()
    await db.refresh(lt)
    return _type_to_response(lt)


async def update_leave_type(db: AsyncSession, type_id: int, payload: LeaveTypeUpdate) -> LeaveTypeResponse:
    lt = await db.get(LeaveType, type_id)
    if not lt:
        raise NotFoundError("Leave type not found")
    if payload.name is not None:
        name = payload.name.strip()
        if name != lt.name:
            await _ensure_unique_type_name(db, name, exclude_id=lt.id)
        lt.name = name
    if payload.description is not None:
        lt.description = payload.description
    if payload.default_days is not None:
        lt.default_days = payload.default_days
    await db.commit()
    await db.refresh(lt)
    return _type_to_response(lt)


async def delete_leave_type(db: AsyncSession, type_id: int) -> DeleteResponse:
    lt = await db.get(LeaveType, type_id)
    if not lt:
        raise NotFoundError("Leave type not found")
    in_use = (
        await db.execute(select(LeaveRequest.id).where(LeaveRequest.leave_type_id == type_id).limit(1))
    ).first()
    if in_use:
        raise ServiceError("Leave type is used by existing leave requests", status.HTTP_400_BAD_REQUEST)
    await db.delete(lt)
    await db.commit()
    return DeleteResponse(success=True, message="Leave type deleted successfully")
