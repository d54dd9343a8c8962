import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.config import settings
from app.core.models import LeaveBalance


@pytest.mark.asyncio
async def test_register_initialises_balances(client: AsyncClient, db_session: AsyncSession, leave_type) -> None:
    payload = {
        "full_name": "Jane Doe",
        "email": "jane@example.com",
        "password": "StrongPass123",
        "department": "Mathematics",
    }

    response = await client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 201
    data = response.json()

    assert data["email"] == payload["email"]
    assert data["role"] == "staff"
    assert data["department"] == "Mathematics"
    assert data["staff_id"].startswith("ST")
    assert len(data["staff_id"]) == 8
    assert "password" not in data and "password_hash" not in data

    balances = (
        await db_session.execute(select(LeaveBalance).where(LeaveBalance.user_id == data["id"]))
    ).scalars().all()
    assert [(b.leave_type_id, b.days_remaining) for b in balances] == [(leave_type.id, 20)]


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, make_user) -> None:
    existing = await make_user()
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "full_name": "Copy Cat",
            "email": existing.email,
            "password": "StrongPass123",
            "department": "Mathematics",
        },
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_privileged_self_registration_is_refused(client: AsyncClient, monkeypatch) -> None:
    monkeypatch.setattr(settings, "allow_privileged_self_registration", False)
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "full_name": "Would Be Admin",
            "email": "boss@example.com",
            "password": "StrongPass123",
            "department": "Mathematics",
            "role": "admin",
        },
    )
    assert response.status_code == 403
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, make_user, test_password: str) -> None:
    user = await make_user(role="hod")

    response = await client.post("/api/v1/auth/login", json={"email": user.email, "password": test_password})

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["id"] == user.id
    assert data["user"]["role"] == "hod"

    profile = await client.get(
        "/api/v1/auth/profile", headers={"Authorization": f"Bearer {data['access_token']}"}
    )
    assert profile.status_code == 200
    assert profile.json()["email"] == user.email


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, make_user) -> None:
    user = await make_user()
    response = await client.post("/api/v1/auth/login", json={"email": user.email, "password": "nope-nope"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_invalid_token_is_unauthorized(client: AsyncClient) -> None:
    response = await client.get("/api/v1/auth/profile", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_update_profile_keeps_role(
    client: AsyncClient, db_session: AsyncSession, make_user, headers_for
) -> None:
    user = await make_user()

    response = await client.put(
        "/api/v1/auth/profile",
        json={"department": "Physics", "role": "admin"},
        headers=headers_for(user),
    )

    assert response.status_code == 200
    assert response.json()["department"] == "Physics"
    stored = (
        await db_session.execute(
            select(User.role, User.department).where(User.id == user.id)
        )
    ).one()
    assert stored == ("staff", "Physics")
