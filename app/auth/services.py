import logging
import time
from typing import Optional

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.leaves.balances import initialize_balances
from app.auth.models import User
from app.auth.schemas import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    ProfileUpdate,
    RegisterRequest,
    UserInfo,
)
from app.auth.security import access_token_for, hash_password, verify_password
from app.core.config import settings
from app.core.enums import UserRole
from app.core.exceptions import ForbiddenError, NotFoundError, ServiceError

logger = logging.getLogger(__name__)


def generate_staff_id(role: str) -> str:
    """Role prefix plus the last six digits of the current millisecond timestamp, e.g. ST482913."""
    timestamp = str(int(time.time() * 1000))[-6:]
    return f"{role.upper()[:2]}{timestamp}"


async def _email_taken(db: AsyncSession, email: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


async def register_user(db: AsyncSession, payload: RegisterRequest) -> UserInfo:
    if payload.role != UserRole.STAFF and not settings.allow_privileged_self_registration:
        raise ForbiddenError("Self-registration is only available for staff accounts")
    if await _email_taken(db, payload.email):
        raise ServiceError("Email is already in use", status.HTTP_409_CONFLICT)

    try:
        user = User(
            staff_id=generate_staff_id(payload.role.value),
            full_name=payload.full_name.strip(),
            email=payload.email,
            password_hash=hash_password(payload.password),
            department=payload.department.strip(),
            role=payload.role.value,
        )
        db.add(user)
        await db.flush()  # to populate user.id

        await initialize_balances(db, user.id)

        await db.commit()
        await db.refresh(user)
    except IntegrityError as e:
        await db.rollback()
        raise ServiceError("Conflict while creating user", status.HTTP_409_CONFLICT) from e

    logger.info("Registered user %s (%s) in department %s", user.id, user.role, user.department)
    return UserInfo.model_validate(user)


async def login_user(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    user_stmt = select(User).where(func.lower(User.email) == func.lower(payload.email))
    user: Optional[User] = (await db.execute(user_stmt)).scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    return LoginResponse(
        access_token=access_token_for(user.id, user.role),
        user=UserInfo.model_validate(user),
    )


async def get_profile(db: AsyncSession, current_user: CurrentUser) -> UserInfo:
    user = await db.get(User, current_user.id)
    if not user:
        raise NotFoundError("User not found")
    return UserInfo.model_validate(user)


async def update_profile(db: AsyncSession, current_user: CurrentUser, payload: ProfileUpdate) -> UserInfo:
    user = await db.get(User, current_user.id)
    if not user:
        raise NotFoundError("User not found")
    if payload.email is not None and payload.email != user.email:
        if await _email_taken(db, payload.email, exclude_id=user.id):
            raise ServiceError("Email is already in use", status.HTTP_409_CONFLICT)
        user.email = payload.email
    if payload.full_name is not None:
        user.full_name = payload.full_name.strip()
    if payload.department is not None:
        user.department = payload.department.strip()
    await db.commit()
    await db.refresh(user)
    return UserInfo.model_validate(user)
