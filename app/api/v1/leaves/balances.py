"""Leave balances: initialisation at registration, deduction on approval, admin adjustments."""

import logging
from datetime import datetime
from typing import List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.exceptions import InsufficientBalanceError, NotFoundError
from app.core.models import LeaveBalance, LeaveType

from .schemas import LeaveBalanceResponse, LeaveBalanceUpdate

logger = logging.getLogger(__name__)


async def initialize_balances(db: AsyncSession, user_id: int) -> None:
    """Create one balance row per leave type at its default days. Caller commits."""
    existing = set(
        (
            await db.execute(
                select(LeaveBalance.leave_type_id).where(LeaveBalance.user_id == user_id)
            )
        ).scalars().all()
    )
    leave_types = (await db.execute(select(LeaveType))).scalars().all()
    for lt in leave_types:
        if lt.id in existing:
            continue
        db.add(
            LeaveBalance(
                user_id=user_id,
                leave_type_id=lt.id,
                days_remaining=lt.default_days,
            )
        )
    await db.flush()


async def _get_balance(db: AsyncSession, user_id: int, leave_type_id: int):
    return (
        await db.execute(
            select(LeaveBalance)
            .where(
                LeaveBalance.user_id == user_id,
                LeaveBalance.leave_type_id == leave_type_id,
            )
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()


async def deduct_balance(db: AsyncSession, user_id: int, leave_type_id: int, days: int) -> None:
    """
    Subtract ``days`` from the user's balance of this leave type, never below zero.
    A missing balance row is created from the leave type's default days first.
    Raises InsufficientBalanceError without changing anything when the balance is too low.
    """
    result = await db.execute(
        update(LeaveBalance)
        .where(
            LeaveBalance.user_id == user_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.days_remaining >= days,
        )
        .values(
            days_remaining=LeaveBalance.days_remaining - days,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info("Deducted %s day(s) from user %s leave type %s", days, user_id, leave_type_id)
        return

    balance = await _get_balance(db, user_id, leave_type_id)
    if balance is not None:
        raise InsufficientBalanceError(
            f"Insufficient leave balance: {balance.days_remaining} day(s) remaining, {days} requested"
        )

    lt = await db.get(LeaveType, leave_type_id)
    available = lt.default_days if lt else 0
    if available < days:
        raise InsufficientBalanceError(
            f"Insufficient leave balance: {available} day(s) remaining, {days} requested"
        )
    db.add(
        LeaveBalance(
            user_id=user_id,
            leave_type_id=leave_type_id,
            days_remaining=available - days,
        )
    )
    await db.flush()
    logger.info("Initialised and deducted %s day(s) for user %s leave type %s", days, user_id, leave_type_id)


async def restore_balance(db: AsyncSession, user_id: int, leave_type_id: int, days: int) -> None:
    """Give back days of a deleted approved request."""
    result = await db.execute(
        update(LeaveBalance)
        .where(
            LeaveBalance.user_id == user_id,
            LeaveBalance.leave_type_id == leave_type_id,
        )
        .values(
            days_remaining=LeaveBalance.days_remaining + days,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        logger.warning("No balance row to restore for user %s leave type %s", user_id, leave_type_id)


async def list_balances(db: AsyncSession, user_id: int) -> List[LeaveBalanceResponse]:
    result = await db.execute(
        select(
            LeaveBalance.user_id,
            LeaveBalance.leave_type_id,
            LeaveType.name,
            LeaveType.default_days,
            LeaveBalance.days_remaining,
        )
        .join(LeaveType, LeaveBalance.leave_type_id == LeaveType.id)
        .where(LeaveBalance.user_id == user_id)
        .order_by(LeaveType.name)
    )
    return [
        LeaveBalanceResponse(
            user_id=uid,
            leave_type_id=type_id,
            leave_type=name,
            default_days=default_days,
            days_remaining=days_remaining,
        )
        for uid, type_id, name, default_days, days_remaining in result.all()
    ]


async def set_balance(
    db: AsyncSession,
    user_id: int,
    payload: LeaveBalanceUpdate,
) -> LeaveBalanceResponse:
    """Admin adjustment: set days_remaining for (user, leave type), creating the row if needed."""
    if not await db.get(User, user_id):
        raise NotFoundError("User not found")
    lt = await db.get(LeaveType, payload.leave_type_id)
    if not lt:
        raise NotFoundError("Leave type not found")

    balance = await _get_balance(db, user_id, payload.leave_type_id)
    if balance is None:
        balance = LeaveBalance(
            user_id=user_id,
            leave_type_id=payload.leave_type_id,
            days_remaining=payload.days,
        )
        db.add(balance)
    else:
        balance.days_remaining = payload.days
    await db.commit()
    logger.info("Set balance of user %s leave type %s to %s day(s)", user_id, lt.id, payload.days)
    return LeaveBalanceResponse(
        user_id=user_id,
        leave_type_id=lt.id,
        leave_type=lt.name,
        default_days=lt.default_days,
        days_remaining=payload.days,
    )
