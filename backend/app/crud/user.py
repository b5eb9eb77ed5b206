# app/crud/user.py
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User


async def count_profiles_for_account(db: AsyncSession, account_id: uuid.UUID) -> int:
    """
    Counts every profile held by an account, active or not.
    Deactivated profiles still occupy a slot.
    """
    stmt = select(func.count(User.id)).where(User.account_id == account_id)
    res = await db.execute(stmt)
    return int(res.scalar() or 0)


async def list_profiles_for_account(db: AsyncSession, account_id: uuid.UUID) -> list[User]:
    stmt = select(User).where(User.account_id == account_id).order_by(User.created_at.asc())
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def get_profile_by_unique_user_id(db: AsyncSession, unique_user_id: str) -> Optional[User]:
    value = (unique_user_id or "").strip().upper()
    if not User.is_valid_unique_user_id(value):
        return None
    res = await db.execute(select(User).where(User.unique_user_id == value))
    return res.scalar_one_or_none()


async def count_direct_referrals(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Profiles whose placing parent is `user_id` (0, 1 or 2)."""
    stmt = select(func.count(User.id)).where(User.referred_by_id == user_id)
    res = await db.execute(stmt)
    return int(res.scalar() or 0)


async def list_profiles(
    db: AsyncSession,
    *,
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[User]:
    """
    Admin listing. `search` is a case-insensitive substring match on name,
    profile name, email and BRI id.
    """
    stmt = select(User)

    term = " ".join((search or "").split())
    if term:
        stmt = stmt.where(
            or_(
                *(
                    column.icontains(term, autoescape=True)
                    for column in (User.name, User.profile_name, User.email, User.unique_user_id)
                )
            )
        )
    if role:
        stmt = stmt.where(User.role == role)
    if is_active is not None:
        stmt = stmt.where(User.is_active.is_(is_active))

    stmt = stmt.order_by(User.created_at.desc()).limit(limit).offset(offset)
    res = await db.execute(stmt)
    return list(res.scalars().all())
