# app/core/referral_codes.py
from __future__ import annotations

import re
import secrets
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import UserRole
from app.models.user import User

REFERRAL_CODE_LENGTH = 8
REFERRAL_RE = re.compile(r"^[A-Z0-9]{8}$")

MAX_CODE_RETRIES = 30
ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
USER_ID_PREFIX = "BRI"


def normalize_referral_code(code: str | None) -> str | None:
    if not code:
        return None
    c = code.strip().upper()
    return c if REFERRAL_RE.match(c) else None


def _gen_referral_code() -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))


def _gen_unique_user_id() -> str:
    return f"{USER_ID_PREFIX}{secrets.randbelow(1_000_000):06d}"


async def allocate_unique_referral_code(db: AsyncSession) -> str:
    """
    Collision-safe allocator.
    We pre-check to reduce collisions, and still rely on unique constraint at commit time.
    """
    for _ in range(MAX_CODE_RETRIES):
        code = _gen_referral_code()
        exists = (await db.execute(select(User.id).where(User.referral_code == code))).first()
        if exists:
            continue
        return code
    raise HTTPException(status_code=500, detail="Could not allocate unique referral code")


async def allocate_unique_user_id(db: AsyncSession) -> str:
    for _ in range(MAX_CODE_RETRIES):
        candidate = _gen_unique_user_id()
        exists = (await db.execute(select(User.id).where(User.unique_user_id == candidate))).first()
        if exists:
            continue
        return candidate
    raise HTTPException(status_code=500, detail="Could not allocate unique user id")


async def resolve_sponsor_by_referral_code(
    db: AsyncSession,
    referral_code: str,
) -> Optional[User]:
    """
    Sponsor lookup for tree placement. Pending and inactive profiles never
    resolve, so their codes behave like unknown codes.
    """
    stmt = (
        select(User)
        .where(User.referral_code == referral_code)
        .where(User.is_active.is_(True))
        .where(User.role != UserRole.PENDING.value)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


def referral_link(code: str, frontend_url: str) -> str:
    return f"{frontend_url.rstrip('/')}/signup?ref={code}"
