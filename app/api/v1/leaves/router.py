from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import LeaveStatus, UserRole, is_privileged
from app.db.session import get_db

from .schemas import (
    CalendarDate,
    ConflictCheckResponse,
    DeleteResponse,
    LeaveBalanceResponse,
    LeaveBalanceUpdate,
    LeaveRequestCreate,
    LeaveRequestResponse,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeResponse,
    LeaveTypeUpdate,
)
from . import balances, service
from .conflicts import check_department_conflicts

router = APIRouter(prefix="/api/v1/leave", tags=["leave"])


# ----- Leave requests -----
@router.post(
    "/request",
    response_model=LeaveRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_leave_request(
    payload: LeaveRequestCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LeaveRequestResponse:
    """Submit a leave request for yourself. 409 when your department already has approved leave in the period."""
    return await service.create_leave_request(db, current_user, payload)


@router.get("/requests", response_model=List[LeaveRequestResponse])
async def list_leave_requests(
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    start_date: Optional[CalendarDate] = Query(None, description="Only requests ending on or after this date"),
    end_date: Optional[CalendarDate] = Query(None, description="Only requests starting on or before this date"),
    department: Optional[str] = Query(None, description="Privileged roles only"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[LeaveRequestResponse]:
    """HOD, Dean and Admin see every request; staff see their own."""
    return await service.list_leave_requests(
        db,
        current_user,
        status_filter=status_filter,
        start_date=start_date,
        end_date=end_date,
        department=department,
    )


@router.get("/history", response_model=List[LeaveRequestResponse])
async def list_leave_history(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[LeaveRequestResponse]:
    return await service.list_leave_history(db, current_user)


@router.get("/requests/{leave_id}", response_model=LeaveRequestResponse)
async def get_leave_request(
    leave_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LeaveRequestResponse:
    return await service.get_leave_request(db, current_user, leave_id)


@router.put("/requests/{leave_id}", response_model=LeaveRequestResponse)
async def update_leave_request(
    leave_id: int,
    payload: LeaveRequestUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LeaveRequestResponse:
    """Approve or reject (HOD, Dean, Admin), or edit the reason of your own pending request."""
    return await service.update_leave_request(db, current_user, leave_id, payload)


@router.delete("/requests/{leave_id}", response_model=DeleteResponse)
async def delete_leave_request(
    leave_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DeleteResponse:
    return await service.delete_leave_request(db, current_user, leave_id)


@router.get("/conflicts", response_model=ConflictCheckResponse)
async def check_conflicts(
    start_date: CalendarDate,
    end_date: CalendarDate,
    user_id: Optional[int] = Query(None, description="Check on behalf of another user (HOD, Dean, Admin)"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ConflictCheckResponse:
    """Preview department conflicts for a period without creating a request."""
    target_id = current_user.id
    if user_id is not None and user_id != current_user.id:
        if not is_privileged(current_user.role):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        target_id = user_id
    return await check_department_conflicts(db, target_id, start_date, end_date)


# ----- Leave types -----
@router.get("/types", response_model=List[LeaveTypeResponse])
async def list_leave_types(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[LeaveTypeResponse]:
    return await service.list_leave_types(db)


@router.post(
    "/types",
    response_model=LeaveTypeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(UserRole.ADMIN.value))],
)
async def create_leave_type(
    payload: LeaveTypeCreate,
    db: AsyncSession = Depends(get_db),
) -> LeaveTypeResponse:
    return await service.create_leave_type(db, payload)


@router.put(
    "/types/{type_id}",
    response_model=LeaveTypeResponse,
    dependencies=[Depends(require_roles(UserRole.ADMIN.value))],
)
async def update_leave_type(
    type_id: int,
    payload: LeaveTypeUpdate,
    db: AsyncSession = Depends(get_db),
) -> LeaveTypeResponse:
    return await service.update_leave_type(db, type_id, payload)


@router.delete(
    "/types/{type_id}",
    response_model=DeleteResponse,
    dependencies=[Depends(require_roles(UserRole.ADMIN.value))],
)
async def delete_leave_type(
    type_id: int,
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    return await service.delete_leave_type(db, type_id)


# ----- Leave balances -----
@router.get("/balance", response_model=List[LeaveBalanceResponse])
async def get_my_balance(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[LeaveBalanceResponse]:
    return await balances.list_balances(db, current_user.id)


@router.get(
    "/balance/{user_id}",
    response_model=List[LeaveBalanceResponse],
    dependencies=[Depends(require_roles(UserRole.ADMIN.value, UserRole.HOD.value))],
)
async def get_user_balance(
    user_id: int,
    db: AsyncSession = Depends(get_db),
) -> List[LeaveBalanceResponse]:
    return await balances.list_balances(db, user_id)


@router.put(
    "/balance/{user_id}",
    response_model=LeaveBalanceResponse,
    dependencies=[Depends(require_roles(UserRole.ADMIN.value))],
)
async def update_user_balance(
    user_id: int,
    payload: LeaveBalanceUpdate,
    db: AsyncSession = Depends(get_db),
) -> LeaveBalanceResponse:
    return await balances.set_balance(db, user_id, payload)
