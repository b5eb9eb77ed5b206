# app/core/points.py
"""
Loyalty point redemption at checkout. One point is worth POINT_VALUE off the
order subtotal; the discount never takes the total below zero.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal

from loguru import logger
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.commission_table import MONEY_QUANT
from app.core.errors import InsufficientPoints
from app.models.user import User

POINT_VALUE = Decimal("0.01")


@dataclass(frozen=True)
class PointsDiscount:
    points: int
    discount: Decimal
    subtotal: Decimal
    final_total: Decimal


def calculate_discount(available_points: int, points: int, subtotal: Decimal) -> PointsDiscount:
    if points > available_points:
        raise InsufficientPoints(
            "Insufficient points",
            requested=points,
            available=available_points,
        )

    subtotal = Decimal(subtotal).quantize(MONEY_QUANT)
    discount = (POINT_VALUE * points).quantize(MONEY_QUANT)
    final_total = max(subtotal - discount, Decimal("0.00"))
    return PointsDiscount(points=points, discount=discount, subtotal=subtotal, final_total=final_total)


async def redeem_points(db: AsyncSession, user_id: uuid.UUID, points: int) -> None:
    """Conditional decrement; the caller commits."""
    if points <= 0:
        return
    res = await db.execute(
        update(User)
        .where(User.id == user_id, User.total_points >= points)
        .values(total_points=User.total_points - points)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise InsufficientPoints("Insufficient points", requested=points)


async def restore_points(db: AsyncSession, user_id: uuid.UUID, points: int) -> None:
    if points <= 0:
        return
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(total_points=User.total_points + points)
        .execution_options(synchronize_session=False)
    )
    logger.bind(user_id=str(user_id), points=points).info("Redeemed points restored")
