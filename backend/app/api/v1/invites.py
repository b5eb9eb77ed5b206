# app/api/v1/invites.py
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import require_super_admin
from app.core.config import settings
from app.core.invites import new_invite
from app.core.referral_codes import allocate_unique_referral_code
from app.core.roles import ShopkeeperRequestStatus, UserRole
from app.db.base import utcnow
from app.db.session import get_db
from app.models.invite_token import InviteToken
from app.models.shopkeeper_request import ShopkeeperRequest
from app.models.user import User
from app.schemas.invite import (
    InviteCreate,
    InviteCreateResponse,
    InviteResponse,
    ShopkeeperRequestReject,
    ShopkeeperRequestResponse,
)

router = APIRouter(prefix="/invites", tags=["invites"])


def _signup_link(token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/signup?invite={token}"


async def _get_pending_request(db: AsyncSession, request_id: uuid.UUID) -> ShopkeeperRequest:
    req = (
        await db.execute(
            select(ShopkeeperRequest)
            .where(ShopkeeperRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not req:
        raise HTTPException(status_code=404, detail="Shopkeeper request not found")
    if req.status != ShopkeeperRequestStatus.PENDING.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "REQUEST_ALREADY_REVIEWED", "status": req.status},
        )
    return req


@router.post("", response_model=InviteCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_invite(
    payload: InviteCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
) -> InviteCreateResponse:
    """Single-use shopkeeper invite. The raw token is returned only here."""
    if payload.expires_in_hours > settings.INVITE_MAX_EXPIRY_HOURS:
        raise HTTPException(
            status_code=422,
            detail=f"expires_in_hours must be at most {settings.INVITE_MAX_EXPIRY_HOURS}",
        )

    raw, invite = new_invite(admin.id, expires_in_hours=payload.expires_in_hours, note=payload.note)
    db.add(invite)
    await db.commit()
    await db.refresh(invite)

    logger.bind(invite_id=str(invite.id), created_by=str(admin.id)).info("Invite created")
    return InviteCreateResponse(
        **InviteResponse.model_validate(invite).model_dump(),
        token=raw,
        signup_link=_signup_link(raw),
    )


@router.get("", response_model=List[InviteResponse])
async def list_invites(
    include_used: bool = Query(default=True),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    stmt = select(InviteToken)
    if not include_used:
        stmt = stmt.where(InviteToken.used.is_(False))
    stmt = stmt.order_by(InviteToken.created_at.desc())
    return (await db.execute(stmt)).scalars().all()


@router.get("/shopkeeper-requests", response_model=List[ShopkeeperRequestResponse])
async def list_shopkeeper_requests(
    status_filter: Optional[ShopkeeperRequestStatus] = Query(default=None, alias="status"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    stmt = select(ShopkeeperRequest)
    if status_filter is not None:
        stmt = stmt.where(ShopkeeperRequest.status == status_filter.value)
    stmt = stmt.order_by(ShopkeeperRequest.created_at.asc())
    return (await db.execute(stmt)).scalars().all()


@router.post("/shopkeeper-requests/{request_id}/approve", response_model=ShopkeeperRequestResponse)
async def approve_shopkeeper_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    req = await _get_pending_request(db, request_id)

    if req.user_id is not None:
        user = await db.get(User, req.user_id)
        if user is not None:
            user.role = UserRole.SHOPKEEPER.value
            user.is_admin = True
            if not user.referral_code:
                user.referral_code = await allocate_unique_referral_code(db)

    req.status = ShopkeeperRequestStatus.APPROVED.value
    req.reviewed_by_id = admin.id
    req.reviewed_at = utcnow()

    await db.commit()
    await db.refresh(req)

    logger.bind(request_id=str(req.id), user_id=str(req.user_id)).info("Shopkeeper request approved")
    return req


@router.post("/shopkeeper-requests/{request_id}/reject", response_model=ShopkeeperRequestResponse)
async def reject_shopkeeper_request(
    request_id: uuid.UUID,
    payload: ShopkeeperRequestReject | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    """The profile falls back to a plain customer and keeps its account slot."""
    req = await _get_pending_request(db, request_id)

    if req.user_id is not None:
        user = await db.get(User, req.user_id)
        if user is not None and user.is_pending:
            user.role = UserRole.CUSTOMER.value
            if not user.referral_code:
                user.referral_code = await allocate_unique_referral_code(db)

    req.status = ShopkeeperRequestStatus.REJECTED.value
    req.reviewed_by_id = admin.id
    req.reviewed_at = utcnow()
    req.rejection_reason = payload.reason if payload else None

    await db.commit()
    await db.refresh(req)

    logger.bind(request_id=str(req.id), user_id=str(req.user_id)).info("Shopkeeper request rejected")
    return req
