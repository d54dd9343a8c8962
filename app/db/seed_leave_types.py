"""
Seed the default leave types and, optionally, the first admin user.

Run after init_db with env set (admin is skipped when unset):
  INITIAL_ADMIN_EMAIL=admin@example.com
  INITIAL_ADMIN_PASSWORD=YourSecurePassword

Creates:
- leave_types: Annual (20 days), Sick (10 days), Personal (5 days) when missing
- users: one admin in the "Administration" department, with balances for every leave type
"""
import asyncio
from typing import List, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.leaves.balances import initialize_balances
from app.auth.models import User
from app.auth.security import hash_password
from app.auth.services import generate_staff_id
from app.core.config import settings
from app.core.enums import UserRole
from app.core.models import LeaveType
from app.db.session import AsyncSessionLocal

DEFAULT_LEAVE_TYPES: List[Tuple[str, str, int]] = [
    ("Annual", "Paid annual leave", 20),
    ("Sick", "Sick leave with medical certificate where required", 10),
    ("Personal", "Short personal or family leave", 5),
]

DEFAULT_ADMIN_FULL_NAME = "System Admin"
DEFAULT_ADMIN_DEPARTMENT = "Administration"


async def seed_leave_types(db: AsyncSession) -> int:
    created = 0
    for name, description, default_days in DEFAULT_LEAVE_TYPES:
        existing = (
            await db.execute(select(LeaveType).where(func.lower(LeaveType.name) == name.lower()))
        ).scalar_one_or_none()
        if existing:
            continue
        db.add(LeaveType(name=name, description=description, default_days=default_days))
        created += 1
    await db.flush()
    return created


async def seed_admin(db: AsyncSession) -> bool:
    email = settings.initial_admin_email
    password = settings.initial_admin_password
    if not email or not password:
        print("No INITIAL_ADMIN_EMAIL/INITIAL_ADMIN_PASSWORD; skipping admin user.")
        return False
    existing = (
        await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    ).scalar_one_or_none()
    if existing:
        print(f"Admin user {email} already exists.")
        return False
    admin = User(
        staff_id=generate_staff_id(UserRole.ADMIN.value),
        full_name=DEFAULT_ADMIN_FULL_NAME,
        email=email,
        password_hash=hash_password(password),
        department=DEFAULT_ADMIN_DEPARTMENT,
        role=UserRole.ADMIN.value,
    )
    db.add(admin)
    await db.flush()
    await initialize_balances(db, admin.id)
    return True


async def main() -> None:
    """Main entry point for the seed script."""
    async with AsyncSessionLocal() as db:
        try:
            types_created = await seed_leave_types(db)
            admin_created = await seed_admin(db)
            await db.commit()
        except Exception as e:
            print(f"❌ Error seeding: {e}")
            await db.rollback()
            raise

    print("=" * 60)
    print(f"Leave types created: {types_created}")
    print(f"Admin user created: {admin_created}")
    print("=" * 60)
    print("✅ Seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
