from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import bearer_scheme, decode_access_token
from app.db.session import get_db
from app.models.account import Account
from app.models.user import User


async def get_current_account(
    credentials=Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Account:
    """
    Dependency for protected endpoints.
    """
    account_id = decode_access_token(credentials.credentials)

    try:
        account_uuid = uuid.UUID(str(account_id))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    account = await db.get(Account, account_uuid)
    if not account:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account not found")

    if not account.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account inactive")

    return account


async def get_current_profile(
    x_profile_id: Optional[str] = Header(default=None, alias="X-Profile-Id"),
    db: AsyncSession = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> User:
    """
    Resolve the acting storefront profile from the X-Profile-Id header and
    ensure it belongs to the authenticated account.
    """
    if not x_profile_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="X-Profile-Id header is required")

    try:
        profile_uuid = uuid.UUID(x_profile_id)
    except ValueError:
        raise HTTPException(
            status_code=422,
            detail="X-Profile-Id must be a valid UUID",
        )

    profile = await db.get(User, profile_uuid)
    if profile is None or profile.account_id != account.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Profile does not belong to this account")

    if not profile.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Profile is inactive")

    return profile


async def require_active_profile(profile: User = Depends(get_current_profile)) -> User:
    """Pending profiles (shopkeepers awaiting approval) cannot transact."""
    if profile.is_pending:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Profile is pending approval")
    return profile


async def require_admin(profile: User = Depends(require_active_profile)) -> User:
    if not (profile.is_admin or profile.is_super_admin):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return profile


async def require_super_admin(profile: User = Depends(require_active_profile)) -> User:
    if not profile.is_super_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Super admin access required")
    return profile
