import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./leave_management_test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import itertools
from datetime import date
from typing import AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.api.v1.leaves.balances import initialize_balances
from app.api.v1.leaves.service import inclusive_days
from app.auth.models import User
from app.auth.security import access_token_for, hash_password
from app.core.enums import LeaveStatus
from app.core.models import LeaveRequest, LeaveType
from app.db.session import Base, get_db
from app.main import app


TEST_PASSWORD = "StrongPass123"
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)

_user_seq = itertools.count(1)


@pytest.fixture()
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A fresh SQLite database file per test, so separate sessions behave like separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting data directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; each request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def leave_type(db_session: AsyncSession) -> LeaveType:
    lt = LeaveType(name="Annual", description="Paid annual leave", default_days=20)
    db_session.add(lt)
    await db_session.commit()
    return lt


@pytest.fixture()
def make_user(db_session: AsyncSession, leave_type: LeaveType):
    async def _make(role: str = "staff", department: str = "Computer Science", full_name: str = "") -> User:
        n = next(_user_seq)
        user = User(
            staff_id=f"{role.upper()[:2]}{n:06d}",
            full_name=full_name or f"Test User {n}",
            email=f"user{n}@example.com",
            password_hash=TEST_PASSWORD_HASH,
            department=department,
            role=role,
        )
        db_session.add(user)
        await db_session.flush()
        await initialize_balances(db_session, user.id)
        await db_session.commit()
        return user

    return _make


@pytest.fixture()
def make_leave(db_session: AsyncSession, leave_type: LeaveType):
    async def _make(
        user: User,
        start_date: date,
        end_date: date,
        status: LeaveStatus = LeaveStatus.PENDING,
    ) -> LeaveRequest:
        req = LeaveRequest(
            user_id=user.id,
            leave_type_id=leave_type.id,
            start_date=start_date,
            end_date=end_date,
            total_days=inclusive_days(start_date, end_date),
            reason="Family event",
            status=status.value,
        )
        db_session.add(req)
        await db_session.commit()
        return req

    return _make


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {access_token_for(user.id, user.role)}"}


@pytest.fixture()
def headers_for():
    return auth_headers


@pytest.fixture()
def test_password() -> str:
    return TEST_PASSWORD
