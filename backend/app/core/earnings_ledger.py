# app/core/earnings_ledger.py
"""
Earnings ledger mutators other than distribution.

Per-user counters obey:
    total_earnings == pending_withdrawal + withdrawn_amount

withdraw            pending -> withdrawn, total unchanged
cancel_commission   reverses one pending record's credit
mark_commission_paid pending -> paid, status only

Each call is one transaction. A counter that would go negative is reported as
InconsistentLedger and the transaction is rolled back; nothing is clamped or
repaired automatically.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.commission_table import MONEY_QUANT, to_money
from app.core.errors import (
    CommissionNotFound,
    InconsistentLedger,
    InsufficientPendingBalance,
    InvalidCommissionStructure,
    InvalidWithdrawalAmount,
    MLMError,
    RecordNotCancellable,
    RecordNotPayable,
    UserNotFound,
)
from app.core.roles import CommissionStatus
from app.models.commission import Commission, Withdrawal
from app.models.user import User


@dataclass
class CommissionSummary:
    user_id: uuid.UUID
    total_earnings: Decimal
    pending_withdrawal: Decimal
    withdrawn_amount: Decimal
    total_commissions: Decimal = Decimal("0.00")
    pending_commissions: Decimal = Decimal("0.00")
    paid_commissions: Decimal = Decimal("0.00")
    cancelled_commissions: Decimal = Decimal("0.00")
    counts: dict[str, int] = field(default_factory=dict)


def is_ledger_consistent(user: User) -> bool:
    return (user.total_earnings or 0) == (user.pending_withdrawal or 0) + (user.withdrawn_amount or 0)


def assert_ledger_consistent(user: User) -> None:
    if not is_ledger_consistent(user):
        logger.bind(
            user_id=str(user.id),
            total_earnings=str(user.total_earnings),
            pending_withdrawal=str(user.pending_withdrawal),
            withdrawn_amount=str(user.withdrawn_amount),
        ).critical("Ledger invariant violated")
        raise InconsistentLedger(
            "total_earnings != pending_withdrawal + withdrawn_amount",
            user_id=str(user.id),
        )


async def _load_user_fresh(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = (
        await db.execute(
            select(User).where(User.id == user_id).with_for_update().execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if user is None:
        raise UserNotFound(f"User {user_id} not found")
    return user


async def _load_commission_fresh(db: AsyncSession, record_id: uuid.UUID) -> Commission:
    record = (
        await db.execute(
            select(Commission)
            .where(Commission.id == record_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if record is None:
        raise CommissionNotFound(f"Commission {record_id} not found")
    return record


def _money_or_error(amount: Any) -> Decimal:
    try:
        return to_money(amount)
    except InvalidCommissionStructure:
        raise InvalidWithdrawalAmount(f"Invalid amount: {amount!r}")


async def withdraw(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount: Any,
    *,
    processed_by_id: uuid.UUID | None = None,
    note: str | None = None,
) -> Withdrawal:
    value = _money_or_error(amount)
    if value <= 0:
        raise InvalidWithdrawalAmount("Withdrawal amount must be positive", amount=value)

    try:
        user = await _load_user_fresh(db, user_id)
        assert_ledger_consistent(user)

        if value > user.pending_withdrawal:
            raise InsufficientPendingBalance(
                f"Requested {value} but only {user.pending_withdrawal} is pending",
                requested=value,
                available=user.pending_withdrawal,
            )

        res = await db.execute(
            update(User)
            .where(User.id == user_id, User.pending_withdrawal >= value)
            .values(
                pending_withdrawal=User.pending_withdrawal - value,
                withdrawn_amount=User.withdrawn_amount + value,
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise InsufficientPendingBalance("Pending balance changed concurrently", requested=value)

        row = Withdrawal(user_id=user_id, amount=value, processed_by_id=processed_by_id, note=note)
        db.add(row)
        await db.commit()
    except MLMError:
        await db.rollback()
        raise

    await db.refresh(user)
    logger.bind(
        user_id=str(user_id),
        amount=str(value),
        processed_by=str(processed_by_id),
    ).info("Withdrawal processed")
    return row


async def _reverse_credit(db: AsyncSession, record: Commission) -> None:
    amount = record.amount
    res = await db.execute(
        update(User)
        .where(
            User.id == record.beneficiary_id,
            User.total_earnings >= amount,
            User.pending_withdrawal >= amount,
        )
        .values(
            total_earnings=User.total_earnings - amount,
            pending_withdrawal=User.pending_withdrawal - amount,
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 1:
        return

    logger.bind(
        commission_id=str(record.id),
        beneficiary_id=str(record.beneficiary_id),
        amount=str(amount),
    ).critical("Commission reversal would drive counters negative")
    raise InconsistentLedger(
        "Reversing this commission would make earnings negative",
        commission_id=str(record.id),
        beneficiary_id=str(record.beneficiary_id),
    )


async def _cancel_pending(db: AsyncSession, record: Commission) -> None:
    await _reverse_credit(db, record)
    res = await db.execute(
        update(Commission)
        .where(Commission.id == record.id, Commission.status == CommissionStatus.PENDING.value)
        .values(status=CommissionStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise RecordNotCancellable("Commission status changed concurrently", commission_id=str(record.id))


def _ensure_cancellable(record: Commission) -> None:
    if record.status != CommissionStatus.PENDING.value:
        raise RecordNotCancellable(
            f"Commission is already {record.status}",
            commission_id=str(record.id),
            status=record.status,
        )


async def cancel_commission(db: AsyncSession, record_id: uuid.UUID) -> Commission:
    try:
        record = await _load_commission_fresh(db, record_id)
        _ensure_cancellable(record)
        await _cancel_pending(db, record)
        await db.commit()
    except MLMError:
        await db.rollback()
        raise

    await db.refresh(record)
    logger.bind(
        commission_id=str(record.id),
        beneficiary_id=str(record.beneficiary_id),
        amount=str(record.amount),
    ).info("Commission cancelled")
    return record


async def cancel_order_commissions(db: AsyncSession, order_id: uuid.UUID) -> list[Commission]:
    """
    Refund path: cancel every pending commission of an order in one
    transaction. Refuses (no changes) when any record was already paid.
    Already-cancelled records are left alone.
    """
    try:
        records = list(
            (
                await db.execute(
                    select(Commission)
                    .where(Commission.order_id == order_id)
                    .order_by(Commission.level.asc())
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalars().all()
        )

        paid = [r for r in records if r.status == CommissionStatus.PAID.value]
        if paid:
            raise RecordNotCancellable(
                "Order has commissions that were already paid",
                order_id=str(order_id),
                paid_commission_ids=[str(r.id) for r in paid],
            )

        pending = [r for r in records if r.status == CommissionStatus.PENDING.value]
        for record in pending:
            await _cancel_pending(db, record)
        await db.commit()
    except MLMError:
        await db.rollback()
        raise

    for record in pending:
        await db.refresh(record)

    logger.bind(order_id=str(order_id), cancelled=len(pending)).info("Order commissions cancelled")
    return pending


async def mark_commission_paid(db: AsyncSession, record_id: uuid.UUID) -> Commission:
    try:
        record = await _load_commission_fresh(db, record_id)
        if record.status != CommissionStatus.PENDING.value:
            raise RecordNotPayable(
                f"Only pending commissions can be marked paid (status={record.status})",
                commission_id=str(record.id),
                status=record.status,
            )
        record.status = CommissionStatus.PAID.value
        await db.commit()
    except MLMError:
        await db.rollback()
        raise

    await db.refresh(record)
    logger.bind(commission_id=str(record.id)).info("Commission marked paid")
    return record


async def get_commission_summary(db: AsyncSession, user_id: uuid.UUID) -> CommissionSummary:
    # counters move through UPDATE statements; never trust the identity map here
    user = (
        await db.execute(select(User).where(User.id == user_id).execution_options(populate_existing=True))
    ).scalar_one_or_none()
    if user is None:
        raise UserNotFound(f"User {user_id} not found")

    rows = (
        await db.execute(
            select(
                Commission.status,
                func.count(Commission.id),
                func.coalesce(func.sum(Commission.amount), 0),
            )
            .where(Commission.beneficiary_id == user_id)
            .group_by(Commission.status)
        )
    ).all()

    summary = CommissionSummary(
        user_id=user.id,
        total_earnings=user.total_earnings,
        pending_withdrawal=user.pending_withdrawal,
        withdrawn_amount=user.withdrawn_amount,
    )
    for status, count, total in rows:
        total = Decimal(str(total)).quantize(MONEY_QUANT)
        summary.counts[status] = int(count or 0)
        if status == CommissionStatus.PENDING.value:
            summary.pending_commissions = total
        elif status == CommissionStatus.PAID.value:
            summary.paid_commissions = total
        elif status == CommissionStatus.CANCELLED.value:
            summary.cancelled_commissions = total

    # cancelled records no longer count towards earnings
    summary.total_commissions = summary.pending_commissions + summary.paid_commissions
    return summary
