# app/core/placement.py
"""
Binary-tree placement.

A new profile joins the tree under a sponsor (resolved from a referral code).
The slot is the first free child slot found by a level-order scan of the
sponsor's subtree, left before right, so a given tree state always yields the
same slot.

Claiming the slot is a conditional UPDATE on that exact column
(`... WHERE left_child_id IS NULL`). When a concurrent signup wins the race the
UPDATE touches zero rows and the scan is repeated against the current tree,
up to MLM_PLACEMENT_MAX_RETRIES times.

`place` owns the transaction: it commits on success and rolls back on any
failure, including work the caller flushed earlier in the same session.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Literal, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import (
    IneligibleUser,
    InvalidReferralCode,
    MLMError,
    PlacementContention,
    ReferralLoop,
    TreeFull,
    UserAlreadyPlaced,
    UserNotFound,
)
from app.core.invites import find_valid_invite, mark_invite_used
from app.core.mlm_tree import is_in_ancestry
from app.core.referral_codes import normalize_referral_code, resolve_sponsor_by_referral_code
from app.core.roles import UserRole
from app.models.user import User

Position = Literal["left", "right"]


@dataclass(frozen=True)
class FreeSlot:
    parent_id: uuid.UUID
    position: Position
    # 1 = directly under the sponsor
    depth: int


@dataclass
class PlacementResult:
    user_id: uuid.UUID
    unique_user_id: str
    role: str
    sponsor_id: Optional[uuid.UUID]
    parent_id: Optional[uuid.UUID]
    position: Optional[Position]
    depth: int
    attempts: int
    message: str

    @property
    def placed(self) -> bool:
        return self.parent_id is not None


async def find_free_slot(
    db: AsyncSession,
    sponsor_id: uuid.UUID,
    max_depth: Optional[int] = None,
) -> FreeSlot:
    """
    Level-order scan of the sponsor's subtree for the first node with a free
    slot. Raises TreeFull when no slot exists within `max_depth` levels.
    """
    max_depth = max_depth if max_depth is not None else settings.MLM_MAX_PLACEMENT_DEPTH

    frontier: list[uuid.UUID] = [sponsor_id]
    visited: set[uuid.UUID] = set()
    depth = 0

    while frontier:
        if depth >= max_depth:
            break

        rows = (
            await db.execute(
                select(User.id, User.left_child_id, User.right_child_id).where(User.id.in_(frontier))
            )
        ).all()
        by_id = {row.id: row for row in rows}

        next_frontier: list[uuid.UUID] = []
        for node_id in frontier:
            if node_id in visited:
                continue
            visited.add(node_id)

            row = by_id.get(node_id)
            if row is None:
                continue
            if row.left_child_id is None:
                return FreeSlot(parent_id=node_id, position="left", depth=depth + 1)
            if row.right_child_id is None:
                return FreeSlot(parent_id=node_id, position="right", depth=depth + 1)
            next_frontier.extend((row.left_child_id, row.right_child_id))

        frontier = next_frontier
        depth += 1

    raise TreeFull(
        f"No free slot within {max_depth} levels of the sponsor",
        sponsor_id=str(sponsor_id),
        max_depth=max_depth,
    )


async def _claim_slot(db: AsyncSession, slot: FreeSlot, new_user_id: uuid.UUID) -> bool:
    column = User.left_child_id if slot.position == "left" else User.right_child_id
    res = await db.execute(
        update(User)
        .where(User.id == slot.parent_id, column.is_(None))
        .values({column: new_user_id})
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def _set_referred_by(db: AsyncSession, new_user_id: uuid.UUID, parent_id: uuid.UUID) -> bool:
    res = await db.execute(
        update(User)
        .where(User.id == new_user_id, User.referred_by_id.is_(None))
        .values(referred_by_id=parent_id)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def _attach(db: AsyncSession, new_user: User, sponsor: User) -> tuple[FreeSlot, int]:
    """Scan + claim with bounded retries. Returns (slot, attempts)."""
    max_retries = settings.MLM_PLACEMENT_MAX_RETRIES

    for attempt in range(1, max_retries + 1):
        slot = await find_free_slot(db, sponsor.id)

        if await _claim_slot(db, slot, new_user.id):
            if not await _set_referred_by(db, new_user.id, slot.parent_id):
                raise UserAlreadyPlaced(
                    "User was placed by a concurrent request",
                    unique_user_id=new_user.unique_user_id,
                )
            return slot, attempt

        logger.bind(
            new_user_id=str(new_user.id),
            sponsor_id=str(sponsor.id),
            parent_id=str(slot.parent_id),
            position=slot.position,
            attempt=attempt,
        ).warning("Placement slot claimed concurrently; rescanning")

    raise PlacementContention(
        f"Could not claim a free slot after {max_retries} attempts; retry later",
        attempts=max_retries,
    )


async def _load_new_user(db: AsyncSession, new_user_id: uuid.UUID) -> User:
    new_user = (
        await db.execute(select(User).where(User.id == new_user_id).execution_options(populate_existing=True))
    ).scalar_one_or_none()
    if new_user is None:
        raise UserNotFound(f"User {new_user_id} not found")
    return new_user


async def _resolve_sponsor(db: AsyncSession, new_user: User, referral_code: str | None) -> User:
    code = normalize_referral_code(referral_code)
    if code is None:
        raise InvalidReferralCode("Referral code is missing or malformed", referral_code=referral_code)

    sponsor = await resolve_sponsor_by_referral_code(db, code)
    if sponsor is None:
        raise InvalidReferralCode("Referral code does not match an active member", referral_code=code)

    if await is_in_ancestry(db, new_user.id, sponsor.id):
        raise ReferralLoop(
            "Sponsor is the new user or sits in the new user's own downline",
            referral_code=code,
        )
    return sponsor


async def place(
    db: AsyncSession,
    new_user_id: uuid.UUID,
    referral_code: str | None = None,
    invite_token: str | None = None,
) -> PlacementResult:
    """
    Attach `new_user_id` to the tree.

    - referral_code only: customer path, placed in the sponsor's subtree.
    - invite_token: shopkeeper path. A valid invite promotes the profile to
      shopkeeper (admin). Without a referral code the shopkeeper stays a root
      with null ancestry; with one it is placed like a customer.
    """
    try:
        new_user = await _load_new_user(db, new_user_id)

        if new_user.referred_by_id is not None:
            raise UserAlreadyPlaced("User already has a referrer", unique_user_id=new_user.unique_user_id)

        if invite_token:
            invite = await find_valid_invite(db, invite_token, lock=True)
            if invite is None:
                raise IneligibleUser("Invite token is invalid, used or expired")
            mark_invite_used(invite, new_user.id)
            new_user.role = UserRole.SHOPKEEPER.value
            new_user.is_admin = True

        if new_user.is_pending or not new_user.is_active:
            raise IneligibleUser(
                "Pending or inactive profiles cannot join the tree",
                unique_user_id=new_user.unique_user_id,
                role=new_user.role,
            )

        if invite_token and not referral_code:
            await db.commit()
            logger.bind(
                user_id=str(new_user.id),
            ).info("Shopkeeper approved via invite without tree placement")
            return PlacementResult(
                user_id=new_user.id,
                unique_user_id=new_user.unique_user_id,
                role=new_user.role,
                sponsor_id=None,
                parent_id=None,
                position=None,
                depth=0,
                attempts=0,
                message="Approved via invite; not placed in the tree",
            )

        sponsor = await _resolve_sponsor(db, new_user, referral_code)
        slot, attempts = await _attach(db, new_user, sponsor)

        await db.commit()
    except MLMError:
        await db.rollback()
        raise
    except Exception:
        await db.rollback()
        logger.bind(new_user_id=str(new_user_id)).exception("Unexpected placement failure")
        raise

    await db.refresh(new_user)

    if slot.parent_id == sponsor.id:
        message = f"Placed directly under sponsor in {slot.position} position"
    else:
        message = f"Placed in sponsor's downline at depth {slot.depth}, {slot.position} position"

    logger.bind(
        user_id=str(new_user.id),
        sponsor_id=str(sponsor.id),
        parent_id=str(slot.parent_id),
        position=slot.position,
        depth=slot.depth,
        attempts=attempts,
    ).info("User placed in tree")

    return PlacementResult(
        user_id=new_user.id,
        unique_user_id=new_user.unique_user_id,
        role=new_user.role,
        sponsor_id=sponsor.id,
        parent_id=slot.parent_id,
        position=slot.position,
        depth=slot.depth,
        attempts=attempts,
        message=message,
    )
