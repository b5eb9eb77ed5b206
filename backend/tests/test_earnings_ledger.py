# tests/test_earnings_ledger.py
from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select, update

from app.core.commission_distribution import distribute
from app.core.earnings_ledger import (
    cancel_commission,
    cancel_order_commissions,
    get_commission_summary,
    is_ledger_consistent,
    mark_commission_paid,
    withdraw,
)
from app.core.errors import (
    CommissionNotFound,
    InconsistentLedger,
    InsufficientPendingBalance,
    InvalidWithdrawalAmount,
    RecordNotCancellable,
    RecordNotPayable,
)
from app.core.roles import CommissionStatus
from app.models.commission import Commission, Withdrawal
from app.models.user import User

from factories import build_chain, create_order, create_product

TWO_LEVELS = [{"level": 1, "amount": 25}, {"level": 2, "amount": 20}]


async def _earning_chain(db, quantity: int = 1):
    """root -> l1 -> buyer with one distributed order."""
    root, l1, buyer = await build_chain(db, 3)
    product = await create_product(db, price="100", cost="55", structure=TWO_LEVELS)
    order = await create_order(db, buyer, product, quantity=quantity)
    await distribute(db, order.id, buyer.id, product.id, quantity)
    await db.refresh(root)
    await db.refresh(l1)
    return root, l1, buyer, order


async def _records(db, order_id) -> list[Commission]:
    stmt = (
        select(Commission)
        .where(Commission.order_id == order_id)
        .order_by(Commission.level)
        .execution_options(populate_existing=True)
    )
    return list((await db.execute(stmt)).scalars().all())


@pytest.mark.asyncio
async def test_withdraw_moves_pending_to_withdrawn(db):
    root, l1, buyer, order = await _earning_chain(db)

    row = await withdraw(db, l1.id, "20.00", note="bank transfer")

    await db.refresh(l1)
    assert isinstance(row, Withdrawal)
    assert row.amount == Decimal("20.00")
    assert l1.total_earnings == Decimal("25.00")
    assert l1.pending_withdrawal == Decimal("5.00")
    assert l1.withdrawn_amount == Decimal("20.00")
    assert is_ledger_consistent(l1)


@pytest.mark.asyncio
async def test_withdraw_more_than_pending_is_rejected(db):
    root, l1, buyer, order = await _earning_chain(db)
    l1_id = l1.id

    with pytest.raises(InsufficientPendingBalance):
        await withdraw(db, l1_id, "25.01")

    await db.refresh(l1)
    assert l1.pending_withdrawal == Decimal("25.00")
    assert l1.withdrawn_amount == Decimal("0.00")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-5", "abc"])
async def test_withdraw_requires_positive_amount(db, amount):
    root, l1, buyer, order = await _earning_chain(db)

    with pytest.raises(InvalidWithdrawalAmount):
        await withdraw(db, l1.id, amount)


@pytest.mark.asyncio
async def test_withdraw_refuses_on_broken_invariant(db):
    root, l1, buyer, order = await _earning_chain(db)
    l1_id = l1.id
    await db.execute(update(User).where(User.id == l1_id).values(withdrawn_amount=Decimal("3.00")))
    await db.commit()

    with pytest.raises(InconsistentLedger):
        await withdraw(db, l1_id, "1.00")

    user = await db.get(User, l1_id, populate_existing=True)
    # never auto-corrected
    assert user.withdrawn_amount == Decimal("3.00")
    assert user.pending_withdrawal == Decimal("25.00")


@pytest.mark.asyncio
async def test_cancel_commission_reverses_credit(db):
    root, l1, buyer, order = await _earning_chain(db, quantity=2)
    level_one = (await _records(db, order.id))[0]

    record = await cancel_commission(db, level_one.id)

    assert record.status == CommissionStatus.CANCELLED.value
    await db.refresh(l1)
    assert l1.total_earnings == Decimal("0.00")
    assert l1.pending_withdrawal == Decimal("0.00")
    assert is_ledger_consistent(l1)


@pytest.mark.asyncio
async def test_cancel_twice_or_after_paid_is_refused(db):
    root, l1, buyer, order = await _earning_chain(db)
    first, second = await _records(db, order.id)
    first_id, second_id = first.id, second.id

    await cancel_commission(db, first_id)
    with pytest.raises(RecordNotCancellable):
        await cancel_commission(db, first_id)

    await mark_commission_paid(db, second_id)
    with pytest.raises(RecordNotCancellable):
        await cancel_commission(db, second_id)
    with pytest.raises(RecordNotPayable):
        await mark_commission_paid(db, second_id)


@pytest.mark.asyncio
async def test_cancel_after_withdrawal_reports_inconsistency(db):
    root, l1, buyer, order = await _earning_chain(db)
    level_one = (await _records(db, order.id))[0]
    record_id, l1_id = level_one.id, l1.id
    await withdraw(db, l1_id, "25.00")

    with pytest.raises(InconsistentLedger):
        await cancel_commission(db, record_id)

    record = await db.get(Commission, record_id, populate_existing=True)
    assert record.status == CommissionStatus.PENDING.value
    user = await db.get(User, l1_id, populate_existing=True)
    assert user.withdrawn_amount == Decimal("25.00")
    assert user.total_earnings == Decimal("25.00")


@pytest.mark.asyncio
async def test_unknown_commission(db):
    root, l1, buyer, order = await _earning_chain(db)

    with pytest.raises(CommissionNotFound):
        await cancel_commission(db, order.id)


@pytest.mark.asyncio
async def test_refund_cancels_every_pending_record_of_order(db):
    root, l1, buyer, order = await _earning_chain(db)

    cancelled = await cancel_order_commissions(db, order.id)

    assert [r.level for r in cancelled] == [1, 2]
    await db.refresh(root)
    await db.refresh(l1)
    assert root.total_earnings == Decimal("0.00")
    assert l1.total_earnings == Decimal("0.00")
    assert all(r.status == CommissionStatus.CANCELLED.value for r in await _records(db, order.id))


@pytest.mark.asyncio
async def test_refund_refused_when_any_record_paid(db):
    root, l1, buyer, order = await _earning_chain(db)
    order_id = order.id
    level_two = (await _records(db, order_id))[1]
    await mark_commission_paid(db, level_two.id)

    with pytest.raises(RecordNotCancellable):
        await cancel_order_commissions(db, order_id)

    statuses = [r.status for r in await _records(db, order_id)]
    assert statuses == [CommissionStatus.PENDING.value, CommissionStatus.PAID.value]


@pytest.mark.asyncio
async def test_summary_groups_by_status(db):
    root, l1, buyer, order = await _earning_chain(db, quantity=2)
    first, second = await _records(db, order.id)
    await mark_commission_paid(db, first.id)

    s = await get_commission_summary(db, l1.id)
    assert s.paid_commissions == Decimal("50.00")
    assert s.pending_commissions == Decimal("0.00")
    assert s.total_commissions == Decimal("50.00")
    assert s.counts == {CommissionStatus.PAID.value: 1}

    await cancel_commission(db, second.id)
    s = await get_commission_summary(db, root.id)
    assert s.cancelled_commissions == Decimal("40.00")
    assert s.total_commissions == Decimal("0.00")
    assert s.total_earnings == Decimal("0.00")


@pytest.mark.asyncio
async def test_summary_reads_balances_written_by_another_session(db, sessionmaker):
    root, l1, buyer, order = await _earning_chain(db)
    assert l1.pending_withdrawal == Decimal("25.00")

    async with sessionmaker() as other:
        await withdraw(other, l1.id, "10.00")

    # l1 is still in this session's identity map with the old counters
    s = await get_commission_summary(db, l1.id)
    assert s.pending_withdrawal == Decimal("15.00")
    assert s.withdrawn_amount == Decimal("10.00")
    assert s.total_earnings == Decimal("25.00")
