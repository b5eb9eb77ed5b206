# app/api/v1/orders.py
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import require_active_profile, require_admin
from app.core.commission_distribution import DistributionResult, distribute
from app.core.commission_table import MONEY_QUANT
from app.core.earnings_ledger import cancel_order_commissions
from app.core.errors import InsufficientPoints
from app.core.points import calculate_discount, redeem_points, restore_points
from app.core.roles import OrderStatus
from app.crud.user import get_profile_by_unique_user_id
from app.db.base import utcnow
from app.db.session import get_db
from app.models.order import Order
from app.models.product import Product
from app.models.user import User
from app.schemas.order import (
    DistributionSummary,
    OrderApprovalResponse,
    OrderCreate,
    OrderDecision,
    OrderRefundResponse,
    OrderResponse,
    PurchaseForUserRequest,
)

router = APIRouter(prefix="/orders", tags=["orders"])


def _summary(result: DistributionResult) -> DistributionSummary:
    return DistributionSummary(
        already_processed=result.already_processed,
        commissions_created=result.commissions_created,
        total_distributed=result.total_distributed,
        buyer_points_awarded=result.buyer_points_awarded,
        unpaid_levels=result.unpaid_levels,
    )


async def _get_active_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await db.get(Product, product_id)
    if not product or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


async def _lock_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    order = (
        await db.execute(
            select(Order).where(Order.id == order_id).with_for_update().execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _require_status(order: Order, expected: OrderStatus) -> None:
    if order.status != expected.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "INVALID_ORDER_STATUS", "status": order.status, "expected": expected.value},
        )


async def _take_stock(db: AsyncSession, product_id: uuid.UUID, quantity: int) -> None:
    res = await db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "INSUFFICIENT_STOCK", "product_id": str(product_id), "requested": quantity},
        )


async def _complete_and_distribute(db: AsyncSession, order: Order) -> DistributionResult:
    """
    Distribution commits the caller's pending changes (status, stock) with the
    commission records, or rolls all of it back.
    """
    await db.flush()
    result = await distribute(db, order.id, order.buyer_id, order.product_id, order.quantity)
    if result.already_processed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "ORDER_ALREADY_DISTRIBUTED", "order_id": str(order.id)},
        )
    await db.refresh(order)
    return result


def _new_order(buyer: User, product: Product, quantity: int) -> Order:
    unit_price = Decimal(product.price).quantize(MONEY_QUANT)
    return Order(
        id=uuid.uuid4(),
        buyer_id=buyer.id,
        product_id=product.id,
        quantity=quantity,
        unit_price=unit_price,
        total_price=(unit_price * quantity).quantize(MONEY_QUANT),
        points_earned=(product.points or 0) * quantity,
        points_redeemed=0,
        discount_amount=Decimal("0.00"),
    )


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(require_active_profile),
):
    """
    Customer checkout. Stock is reserved and commissions paid on admin approval.
    Redeemed points are taken at checkout and given back when the order is
    rejected or refunded.
    """
    product = await _get_active_product(db, payload.product_id)
    if product.stock < payload.quantity:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "INSUFFICIENT_STOCK", "product_id": str(product.id), "available": product.stock},
        )

    order = _new_order(profile, product, payload.quantity)
    order.status = OrderStatus.PENDING_ADMIN_APPROVAL.value

    if payload.points_to_redeem:
        quote = calculate_discount(profile.total_points, payload.points_to_redeem, order.total_price)
        order.points_redeemed = quote.points
        order.discount_amount = quote.discount
        order.total_price = quote.final_total

    db.add(order)
    try:
        await redeem_points(db, profile.id, order.points_redeemed)
    except InsufficientPoints:
        await db.rollback()
        raise
    await db.commit()
    await db.refresh(order)

    logger.bind(
        order_id=str(order.id),
        buyer_id=str(profile.id),
        quantity=order.quantity,
        points_redeemed=order.points_redeemed,
    ).info("Order placed")
    return order


@router.get("/me", response_model=List[OrderResponse])
async def my_orders(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(require_active_profile),
):
    stmt = (
        select(Order)
        .where(Order.buyer_id == profile.id)
        .order_by(Order.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return (await db.execute(stmt)).scalars().all()


@router.get("/pending", response_model=List[OrderResponse])
async def pending_orders(
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    stmt = (
        select(Order)
        .where(Order.status == OrderStatus.PENDING_ADMIN_APPROVAL.value)
        .order_by(Order.created_at.asc())
        .limit(limit)
    )
    return (await db.execute(stmt)).scalars().all()


@router.post("/purchase-for-user", response_model=OrderApprovalResponse, status_code=status.HTTP_201_CREATED)
async def purchase_for_user(
    payload: PurchaseForUserRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> OrderApprovalResponse:
    """Admin sale on behalf of a profile; completed and distributed at once."""
    buyer = await get_profile_by_unique_user_id(db, payload.unique_user_id)
    if buyer is None:
        raise HTTPException(status_code=404, detail="User not found")
    if buyer.is_pending or not buyer.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Buyer profile cannot transact")

    product = await _get_active_product(db, payload.product_id)

    order = _new_order(buyer, product, payload.quantity)
    order.status = OrderStatus.COMPLETED.value
    order.admin_approved_by = admin.id
    order.admin_approved_at = utcnow()
    order.admin_notes = payload.admin_notes
    db.add(order)

    await _take_stock(db, product.id, payload.quantity)
    result = await _complete_and_distribute(db, order)

    logger.bind(
        order_id=str(order.id),
        buyer_id=str(buyer.id),
        admin_id=str(admin.id),
    ).info("Admin purchase completed")
    return OrderApprovalResponse(order=OrderResponse.model_validate(order), distribution=_summary(result))


@router.post("/{order_id}/approve", response_model=OrderApprovalResponse)
async def approve_order(
    order_id: uuid.UUID,
    payload: OrderDecision | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> OrderApprovalResponse:
    order = await _lock_order(db, order_id)
    _require_status(order, OrderStatus.PENDING_ADMIN_APPROVAL)

    await _take_stock(db, order.product_id, order.quantity)

    order.status = OrderStatus.COMPLETED.value
    order.admin_approved_by = admin.id
    order.admin_approved_at = utcnow()
    if payload and payload.admin_notes:
        order.admin_notes = payload.admin_notes

    result = await _complete_and_distribute(db, order)

    logger.bind(
        order_id=str(order.id),
        admin_id=str(admin.id),
        commissions=result.commissions_created,
    ).info("Order approved")
    return OrderApprovalResponse(order=OrderResponse.model_validate(order), distribution=_summary(result))


@router.post("/{order_id}/reject", response_model=OrderResponse)
async def reject_order(
    order_id: uuid.UUID,
    payload: OrderDecision | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    order = await _lock_order(db, order_id)
    _require_status(order, OrderStatus.PENDING_ADMIN_APPROVAL)

    order.status = OrderStatus.CANCELLED.value
    order.admin_approved_by = admin.id
    order.admin_approved_at = utcnow()
    if payload and payload.admin_notes:
        order.admin_notes = payload.admin_notes
    await restore_points(db, order.buyer_id, order.points_redeemed)

    await db.commit()
    await db.refresh(order)
    return order


@router.post("/{order_id}/refund", response_model=OrderRefundResponse)
async def refund_order(
    order_id: uuid.UUID,
    payload: OrderDecision | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> OrderRefundResponse:
    """
    Refund a completed order: restock, cancel its pending commissions and
    reverse their credits in one transaction. Refused when any commission of
    the order was already paid out.
    """
    order = await _lock_order(db, order_id)
    _require_status(order, OrderStatus.COMPLETED)

    order.status = OrderStatus.REFUNDED.value
    if payload and payload.admin_notes:
        order.admin_notes = payload.admin_notes
    await db.execute(
        update(Product)
        .where(Product.id == order.product_id)
        .values(stock=Product.stock + order.quantity)
        .execution_options(synchronize_session=False)
    )
    await restore_points(db, order.buyer_id, order.points_redeemed)
    await db.flush()

    cancelled = await cancel_order_commissions(db, order.id)
    await db.refresh(order)

    reversed_amount = sum((r.amount for r in cancelled), Decimal("0.00"))
    logger.bind(
        order_id=str(order.id),
        admin_id=str(admin.id),
        reversed=str(reversed_amount),
    ).info("Order refunded")
    return OrderRefundResponse(
        order=OrderResponse.model_validate(order),
        cancelled_commissions=len(cancelled),
        reversed_amount=reversed_amount,
    )
