# app/api/v1/points.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import require_active_profile
from app.core.points import POINT_VALUE, calculate_discount
from app.db.session import get_db
from app.models.user import User
from app.schemas.order import PointsBalanceResponse, PointsDiscountRequest, PointsDiscountResponse

router = APIRouter(prefix="/points", tags=["points"])


@router.get("", response_model=PointsBalanceResponse)
async def points_balance(
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(require_active_profile),
) -> PointsBalanceResponse:
    await db.refresh(profile)
    return PointsBalanceResponse(total_points=profile.total_points, point_value=POINT_VALUE)


@router.post("/calculate-discount", response_model=PointsDiscountResponse)
async def points_discount(
    payload: PointsDiscountRequest,
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(require_active_profile),
) -> PointsDiscountResponse:
    """Quote only; points are taken when an order is placed with points_to_redeem."""
    await db.refresh(profile)
    quote = calculate_discount(profile.total_points, payload.points, payload.subtotal)
    return PointsDiscountResponse(
        points_to_redeem=quote.points,
        discount=quote.discount,
        subtotal=quote.subtotal,
        final_total=quote.final_total,
        available_points=profile.total_points,
    )
