"""
Department leave conflict detection.

Two employees of the same department may not both hold approved leave when
either of these holds for an existing approved request E and a candidate C:
- the periods overlap, boundaries inclusive (E.start <= C.end and E.end >= C.start)
- E starts in the same calendar month and year as C
"""

from datetime import date
from typing import Tuple

from fastapi import status
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.enums import LeaveStatus
from app.core.exceptions import NotFoundError, ServiceError
from app.core.models import LeaveRequest, LeaveType

from .schemas import ConflictCheckResponse, ConflictingLeave


def month_bounds(day: date) -> Tuple[date, date]:
    """First day of ``day``'s month and first day of the following month."""
    first = day.replace(day=1)
    if first.month == 12:
        return first, first.replace(year=first.year + 1, month=1)
    return first, first.replace(month=first.month + 1)


async def get_user_department(db: AsyncSession, user_id: int, for_update: bool = False) -> str:
    stmt = select(User.department).where(User.id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    department = (await db.execute(stmt)).scalar_one_or_none()
    if department is None:
        raise NotFoundError("User not found")
    return department


async def check_department_conflicts(
    db: AsyncSession,
    user_id: int,
    start_date: date,
    end_date: date,
) -> ConflictCheckResponse:
    """Approved leave of other employees in ``user_id``'s department that blocks the given period."""
    if end_date < start_date:
        raise ServiceError("end_date must be on or after start_date", status.HTTP_400_BAD_REQUEST)

    department = await get_user_department(db, user_id)
    month_start, next_month_start = month_bounds(start_date)

    result = await db.execute(
        select(LeaveRequest, User.full_name, User.department, LeaveType.name)
        .join(User, LeaveRequest.user_id == User.id)
        .outerjoin(LeaveType, LeaveRequest.leave_type_id == LeaveType.id)
        .where(
            User.department == department,
            User.id != user_id,
            LeaveRequest.status == LeaveStatus.APPROVED.value,
            or_(
                and_(
                    LeaveRequest.start_date <= end_date,
                    LeaveRequest.end_date >= start_date,
                ),
                and_(
                    LeaveRequest.start_date >= month_start,
                    LeaveRequest.start_date < next_month_start,
                ),
            ),
        )
        .order_by(LeaveRequest.start_date, LeaveRequest.id)
    )
    conflicts = [
        ConflictingLeave(
            id=r.id,
            user_id=r.user_id,
            full_name=full_name,
            department=dept,
            leave_type=leave_type,
            start_date=r.start_date,
            end_date=r.end_date,
            status=r.status,
        )
        for r, full_name, dept, leave_type in result.all()
    ]
    return ConflictCheckResponse(
        has_conflict=len(conflicts) > 0,
        department=department,
        conflicts=conflicts,
    )
