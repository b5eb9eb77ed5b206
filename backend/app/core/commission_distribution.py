# app/core/commission_distribution.py
"""
Commission distribution for completed orders.

Runs as one database transaction per order:
  1. idempotency guard row (order_distributions.order_id is the primary key)
  2. one commission record per payable level that has an ancestor
  3. SQL-side increments of the beneficiary counters
  4. buyer loyalty points
Either everything commits or nothing does. Any work the caller flushed into
the same session (e.g. the order status change) commits or rolls back with it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.commission_table import MONEY_QUANT, resolve
from app.core.errors import (
    DuplicateOrderDistribution,
    IneligibleUser,
    MLMError,
    OrderNotFound,
    ProductNotFound,
    UserNotFound,
)
from app.core.mlm_tree import get_ancestry_chain
from app.core.roles import CommissionStatus
from app.models.commission import Commission, OrderDistribution
from app.models.order import Order
from app.models.product import Product
from app.models.user import User


@dataclass
class DistributionResult:
    order_id: uuid.UUID
    buyer_id: uuid.UUID
    already_processed: bool = False
    records: list[Commission] = field(default_factory=list)
    total_distributed: Decimal = Decimal("0.00")
    buyer_points_awarded: int = 0
    # table levels with no ancestor at that depth
    unpaid_levels: list[int] = field(default_factory=list)

    @property
    def commissions_created(self) -> int:
        return len(self.records)


async def is_order_distributed(db: AsyncSession, order_id: uuid.UUID) -> bool:
    stmt = select(OrderDistribution.order_id).where(OrderDistribution.order_id == order_id)
    return (await db.execute(stmt)).first() is not None


async def _credit_beneficiary(db: AsyncSession, beneficiary_id: uuid.UUID, amount: Decimal) -> None:
    res = await db.execute(
        update(User)
        .where(User.id == beneficiary_id)
        .values(
            total_earnings=User.total_earnings + amount,
            pending_withdrawal=User.pending_withdrawal + amount,
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise UserNotFound(f"Beneficiary {beneficiary_id} disappeared during distribution")


async def _award_buyer_points(db: AsyncSession, buyer_id: uuid.UUID, points: int) -> None:
    await db.execute(
        update(User)
        .where(User.id == buyer_id)
        .values(total_points=User.total_points + points)
        .execution_options(synchronize_session=False)
    )


async def _claim_order(db: AsyncSession, order_id: uuid.UUID, buyer_id: uuid.UUID) -> OrderDistribution:
    if await is_order_distributed(db, order_id):
        raise DuplicateOrderDistribution(order_id=str(order_id))

    guard = OrderDistribution(order_id=order_id, buyer_id=buyer_id)
    db.add(guard)
    try:
        await db.flush()
    except IntegrityError:
        # concurrent delivery of the same order won the insert
        raise DuplicateOrderDistribution(order_id=str(order_id))
    return guard


async def distribute(
    db: AsyncSession,
    order_id: uuid.UUID,
    buyer_id: uuid.UUID,
    product_id: uuid.UUID,
    quantity: int,
) -> DistributionResult:
    """
    Credit the buyer's ancestors for one completed order.

    Level L of the product table pays `amount_L * quantity` to the ancestor L
    steps above the buyer. Levels deeper than the buyer's ancestry are skipped
    without redistribution. A repeated call for the same order is a no-op and
    returns `already_processed=True`.
    """
    if quantity < 1:
        raise ValueError("quantity must be at least 1")

    result = DistributionResult(order_id=order_id, buyer_id=buyer_id)

    try:
        if await db.get(Order, order_id) is None:
            raise OrderNotFound(f"Order {order_id} not found")

        buyer = await db.get(User, buyer_id)
        if buyer is None:
            raise UserNotFound(f"Buyer {buyer_id} not found")

        # a delivered order stays a no-op even if the product or buyer changed since
        guard = await _claim_order(db, order_id, buyer_id)

        product = await db.get(Product, product_id)
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found")

        if buyer.is_pending:
            raise IneligibleUser("Pending profiles cannot transact", unique_user_id=buyer.unique_user_id)

        table = resolve(product)

        depth = max(table) if table else 0
        ancestors = await get_ancestry_chain(db, buyer_id, max_level=depth)

        for level, amount in table.items():
            if level > len(ancestors):
                result.unpaid_levels.append(level)
                continue

            beneficiary = ancestors[level - 1]
            credit = (amount * quantity).quantize(MONEY_QUANT)

            record = Commission(
                beneficiary_id=beneficiary.id,
                from_user_id=buyer_id,
                order_id=order_id,
                product_id=product_id,
                level=level,
                amount=credit,
                status=CommissionStatus.PENDING.value,
            )
            db.add(record)
            await _credit_beneficiary(db, beneficiary.id, credit)

            result.records.append(record)
            result.total_distributed += credit

        points = (product.buyer_reward_points or 0) * quantity
        if points > 0:
            await _award_buyer_points(db, buyer_id, points)
            result.buyer_points_awarded = points

        guard.records_created = len(result.records)
        guard.total_amount = result.total_distributed
        await db.flush()
        await db.commit()
    except DuplicateOrderDistribution:
        await db.rollback()
        logger.bind(order_id=str(order_id)).info("Order already distributed; skipping")
        return DistributionResult(order_id=order_id, buyer_id=buyer_id, already_processed=True)
    except MLMError:
        await db.rollback()
        raise
    except Exception:
        await db.rollback()
        logger.bind(order_id=str(order_id)).exception("Commission distribution failed; rolled back")
        raise

    logger.bind(
        order_id=str(order_id),
        buyer_id=str(buyer_id),
        records=result.commissions_created,
        total=str(result.total_distributed),
        unpaid_levels=result.unpaid_levels,
    ).info("Commissions distributed")
    return result
