# app/core/activation.py
"""
Admin activation and deactivation of storefront profiles.

A profile created while REQUIRE_PROFILE_ACTIVATION is on starts inactive and
keeps the sponsor's code in `pending_referral_code`. Activation commits the
status change first, then places the profile with that code. A failed
placement leaves the profile active with the code still stored, and the
failure is reported back instead of raised.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    MLMError,
    SuperAdminProtected,
    UserAlreadyActive,
    UserAlreadyInactive,
    UserNotFound,
)
from app.core.placement import PlacementResult, place
from app.db.base import utcnow
from app.models.user import User


@dataclass
class ActivationResult:
    user_id: uuid.UUID
    unique_user_id: str
    placement: Optional[PlacementResult] = None
    placement_error: Optional[str] = None

    @property
    def placed(self) -> bool:
        return self.placement is not None and self.placement.placed

    @property
    def message(self) -> str:
        if self.placement_error:
            return f"User activated, but tree placement failed: {self.placement_error}"
        if self.placement is not None:
            return f"User activated and placed in the tree. {self.placement.message}"
        return "User activated"


async def _lock_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = (
        await db.execute(
            select(User).where(User.id == user_id).with_for_update().execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if user is None:
        raise UserNotFound(f"User {user_id} not found")
    return user


async def _set_active(db: AsyncSession, user_id: uuid.UUID, active: bool, **values) -> bool:
    res = await db.execute(
        update(User)
        .where(User.id == user_id, User.is_active.is_(not active))
        .values(is_active=active, **values)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def activate_user(db: AsyncSession, user_id: uuid.UUID, admin_id: uuid.UUID) -> ActivationResult:
    try:
        user = await _lock_user(db, user_id)
        unique_user_id = user.unique_user_id
        pending_code = user.pending_referral_code

        if user.is_active:
            raise UserAlreadyActive("User is already active", unique_user_id=unique_user_id)

        if not await _set_active(db, user_id, True, activated_at=utcnow(), activated_by_id=admin_id):
            raise UserAlreadyActive("User was activated concurrently", unique_user_id=unique_user_id)

        await db.commit()
    except MLMError:
        await db.rollback()
        raise

    result = ActivationResult(user_id=user_id, unique_user_id=unique_user_id)

    if pending_code:
        # cleared together with the placement; a failed placement keeps it
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(pending_referral_code=None)
            .execution_options(synchronize_session=False)
        )
        try:
            result.placement = await place(db, user_id, pending_code)
        except MLMError as exc:
            result.placement_error = exc.message
            logger.bind(
                user_id=str(user_id),
                referral_code=pending_code,
                error=exc.code,
            ).warning("Activated user could not be placed")

    logger.bind(
        user_id=str(user_id),
        admin_id=str(admin_id),
        placed=result.placed,
    ).info("User activated")
    return result


async def deactivate_user(db: AsyncSession, user_id: uuid.UUID, admin_id: uuid.UUID) -> User:
    """
    The profile keeps its tree position and ledger; it can no longer sign in
    as that profile, sponsor new members or transact.
    """
    try:
        user = await _lock_user(db, user_id)

        if user.is_super_admin:
            raise SuperAdminProtected("Super admin profiles cannot be deactivated", unique_user_id=user.unique_user_id)
        if not user.is_active:
            raise UserAlreadyInactive("User is already inactive", unique_user_id=user.unique_user_id)

        if not await _set_active(db, user_id, False):
            raise UserAlreadyInactive("User was deactivated concurrently", unique_user_id=user.unique_user_id)

        await db.commit()
    except MLMError:
        await db.rollback()
        raise

    await db.refresh(user)

    logger.bind(user_id=str(user_id), admin_id=str(admin_id)).info("User deactivated")
    return user
