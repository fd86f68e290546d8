"""
Seed script to create the first superadmin user.

Run once (after tables exist) with env set:
  PLATFORM_ADMIN_EMAIL=admin@yourplatform.com
  PLATFORM_ADMIN_PASSWORD=YourSecurePassword1

Creates the user with role superadmin, or promotes and resets an existing
user with that email.
"""
import asyncio
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.security import hash_password
from app.core.config import settings
from app.core.enums import UserRole
from app.db.session import AsyncSessionLocal

DEFAULT_FIRST_NAME = "Platform"
DEFAULT_LAST_NAME = "Admin"


async def seed_superadmin(
    db: AsyncSession,
    email: Optional[str] = None,
    password: Optional[str] = None,
) -> Optional[User]:
    email = (email or settings.platform_admin_email or "").strip().lower()
    password = password or settings.platform_admin_password
    if not email or not password:
        print("No platform admin email/password; skipping superadmin user.")
        return None

    result = await db.execute(select(User).where(func.lower(User.email) == email))
    user = result.scalar_one_or_none()
    if not user:
        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name=DEFAULT_FIRST_NAME,
            last_name=DEFAULT_LAST_NAME,
            role=UserRole.SUPERADMIN.value,
            school_id=None,
            is_active=True,
        )
        db.add(user)
        print("Created superadmin user:", email)
    else:
        user.role = UserRole.SUPERADMIN.value
        user.school_id = None
        user.is_active = True
        user.password_hash = hash_password(password)
        print("Updated existing user to superadmin:", email)

    await db.commit()
    return user


async def main() -> None:
    async with AsyncSessionLocal() as db:
        try:
            await seed_superadmin(db)
        except Exception as e:
            await db.rollback()
            print("Error:", e)
            raise


if __name__ == "__main__":
    asyncio.run(main())
