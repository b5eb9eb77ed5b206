# app/api/v1/mlm.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import get_current_profile, require_active_profile
from app.core.config import settings
from app.core.earnings_ledger import get_commission_summary
from app.core.mlm_tree import (
    TreeNode,
    get_ancestry_chain,
    get_complete_downline,
    get_descendant_tree,
    get_direct_downline,
)
from app.core.placement import place
from app.core.referral_codes import allocate_unique_referral_code, referral_link
from app.core.roles import CommissionStatus, ShopkeeperRequestStatus
from app.crud.user import count_direct_referrals
from app.db.base import utcnow
from app.db.session import get_db
from app.models.commission import Commission
from app.models.shopkeeper_request import ShopkeeperRequest
from app.models.user import User
from app.schemas.mlm import (
    CommissionListResponse,
    CommissionResponse,
    CommissionSummaryResponse,
    CompleteDownlineResponse,
    DirectDownlineResponse,
    DownlineMemberResponse,
    JoinTreeRequest,
    MemberResponse,
    PlacementResponse,
    ReferralCodeResponse,
    TreeNodeResponse,
    UplineMember,
)

router = APIRouter(prefix="/mlm", tags=["mlm"])

MAX_COMPLETE_DOWNLINE_DEPTH = 20


def _member_fields(user: User) -> dict:
    return MemberResponse.model_validate(user).model_dump()


def _to_tree_response(node: TreeNode) -> TreeNodeResponse:
    return TreeNodeResponse(
        id=node.id,
        unique_user_id=node.unique_user_id,
        name=node.name,
        referral_code=node.referral_code,
        total_earnings=node.total_earnings,
        depth=node.depth,
        has_children=node.has_children,
        left=_to_tree_response(node.left) if node.left else None,
        right=_to_tree_response(node.right) if node.right else None,
    )


@router.post("/referral-code", response_model=ReferralCodeResponse)
async def get_or_create_referral_code(
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(require_active_profile),
) -> ReferralCodeResponse:
    if profile.referral_code:
        return ReferralCodeResponse(
            referral_code=profile.referral_code,
            referral_link=referral_link(profile.referral_code, settings.FRONTEND_URL),
        )

    code = await allocate_unique_referral_code(db)
    res = await db.execute(
        update(User)
        .where(User.id == profile.id, User.referral_code.is_(None))
        .values(referral_code=code)
        .execution_options(synchronize_session=False)
    )
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Referral code collision; retry")

    await db.refresh(profile)
    return ReferralCodeResponse(
        referral_code=profile.referral_code,
        referral_link=referral_link(profile.referral_code, settings.FRONTEND_URL),
        created=res.rowcount == 1,
    )


@router.post("/join-tree", response_model=PlacementResponse)
async def join_tree(
    payload: JoinTreeRequest,
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(get_current_profile),
) -> PlacementResponse:
    """
    Place the acting profile in the tree. A pending shopkeeper may pass an
    invite_token here to get approved; its open request is closed with it.
    """
    if not payload.referral_code and not payload.invite_token:
        raise HTTPException(
            status_code=422,
            detail="referral_code or invite_token is required",
        )

    if profile.is_pending and payload.invite_token:
        await db.execute(
            update(ShopkeeperRequest)
            .where(
                ShopkeeperRequest.user_id == profile.id,
                ShopkeeperRequest.status == ShopkeeperRequestStatus.PENDING.value,
            )
            .values(status=ShopkeeperRequestStatus.APPROVED.value, reviewed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if not profile.referral_code:
            profile.referral_code = await allocate_unique_referral_code(db)
        await db.flush()

    result = await place(db, profile.id, payload.referral_code, invite_token=payload.invite_token)

    return PlacementResponse(
        user_id=result.user_id,
        unique_user_id=result.unique_user_id,
        role=result.role,
        placed=result.placed,
        sponsor_id=result.sponsor_id,
        parent_id=result.parent_id,
        position=result.position,
        depth=result.depth,
        message=result.message,
    )


@router.get("/upline", response_model=list[UplineMember])
async def upline(
    max_level: int = Query(default=20, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(get_current_profile),
):
    """Ancestors nearest-first; level 1 is the placing parent."""
    chain = await get_ancestry_chain(db, profile.id, max_level=max_level)
    return [UplineMember(**_member_fields(u), level=i) for i, u in enumerate(chain, start=1)]


@router.get("/downline/direct", response_model=DirectDownlineResponse)
async def direct_downline(
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(get_current_profile),
) -> DirectDownlineResponse:
    direct = await get_direct_downline(db, profile.id)
    return DirectDownlineResponse(
        left=MemberResponse.model_validate(direct.left) if direct.left else None,
        right=MemberResponse.model_validate(direct.right) if direct.right else None,
        count=len(direct.members),
    )


@router.get("/downline/complete", response_model=CompleteDownlineResponse)
async def complete_downline(
    max_depth: int = Query(default=MAX_COMPLETE_DOWNLINE_DEPTH, ge=1, le=MAX_COMPLETE_DOWNLINE_DEPTH),
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(get_current_profile),
) -> CompleteDownlineResponse:
    members = await get_complete_downline(db, profile.id, max_depth=max_depth)
    items = [
        DownlineMemberResponse(
            **_member_fields(m.user),
            depth=m.depth,
            parent_id=m.parent_id,
            position=m.position,
        )
        for m in members
    ]
    return CompleteDownlineResponse(items=items, total=len(items), max_depth=max_depth)


@router.get("/tree", response_model=TreeNodeResponse)
async def tree(
    max_depth: Optional[int] = Query(default=None, ge=1),
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(get_current_profile),
) -> TreeNodeResponse:
    depth = min(max_depth or settings.MLM_TREE_VIEW_MAX_DEPTH, settings.MLM_TREE_VIEW_MAX_DEPTH)
    root = await get_descendant_tree(db, profile.id, max_depth=depth)
    if root is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return _to_tree_response(root)


@router.get("/commissions", response_model=CommissionListResponse)
async def my_commissions(
    status_filter: Optional[CommissionStatus] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(get_current_profile),
) -> CommissionListResponse:
    base = select(Commission).where(Commission.beneficiary_id == profile.id)
    if status_filter is not None:
        base = base.where(Commission.status == status_filter.value)

    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar_one()
    rows = (
        await db.execute(
            base.order_by(Commission.created_at.desc(), Commission.level.asc()).limit(limit).offset(offset)
        )
    ).scalars().all()

    return CommissionListResponse(
        items=[CommissionResponse.model_validate(r) for r in rows],
        total=int(total),
        limit=limit,
        offset=offset,
    )


@router.get("/summary", response_model=CommissionSummaryResponse)
async def summary(
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(get_current_profile),
) -> CommissionSummaryResponse:
    s = await get_commission_summary(db, profile.id)
    return CommissionSummaryResponse(
        user_id=s.user_id,
        total_points=profile.total_points,
        total_earnings=s.total_earnings,
        pending_withdrawal=s.pending_withdrawal,
        withdrawn_amount=s.withdrawn_amount,
        total_commissions=s.total_commissions,
        pending_commissions=s.pending_commissions,
        paid_commissions=s.paid_commissions,
        cancelled_commissions=s.cancelled_commissions,
        counts=s.counts,
        direct_referrals=await count_direct_referrals(db, profile.id),
    )
