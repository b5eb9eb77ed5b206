# app/api/v1/ledger.py
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import require_admin
from app.core.earnings_ledger import cancel_commission, mark_commission_paid, withdraw
from app.db.session import get_db
from app.models.commission import Withdrawal
from app.models.user import User
from app.schemas.ledger import WithdrawalRequest, WithdrawalResponse
from app.schemas.mlm import CommissionResponse

router = APIRouter(prefix="/ledger", tags=["ledger"])


def _withdrawal_response(row: Withdrawal, user: User) -> WithdrawalResponse:
    return WithdrawalResponse(
        id=row.id,
        user_id=row.user_id,
        amount=row.amount,
        processed_by_id=row.processed_by_id,
        note=row.note,
        created_at=row.created_at,
        pending_withdrawal=user.pending_withdrawal,
        withdrawn_amount=user.withdrawn_amount,
        total_earnings=user.total_earnings,
    )


@router.post("/withdrawals", response_model=WithdrawalResponse, status_code=status.HTTP_201_CREATED)
async def create_withdrawal(
    payload: WithdrawalRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> WithdrawalResponse:
    """Pay out part of a member's pending balance (pending -> withdrawn)."""
    row = await withdraw(db, payload.user_id, payload.amount, processed_by_id=admin.id, note=payload.note)
    user = await db.get(User, payload.user_id)
    return _withdrawal_response(row, user)


@router.get("/withdrawals", response_model=List[WithdrawalResponse])
async def list_withdrawals(
    user_id: Optional[uuid.UUID] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    stmt = select(Withdrawal, User).join(User, User.id == Withdrawal.user_id)
    if user_id is not None:
        stmt = stmt.where(Withdrawal.user_id == user_id)
    stmt = stmt.order_by(Withdrawal.created_at.desc()).limit(limit)

    rows = (await db.execute(stmt)).all()
    return [_withdrawal_response(w, u) for w, u in rows]


@router.post("/commissions/{commission_id}/cancel", response_model=CommissionResponse)
async def cancel_commission_record(
    commission_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return await cancel_commission(db, commission_id)


@router.post("/commissions/{commission_id}/mark-paid", response_model=CommissionResponse)
async def mark_commission_record_paid(
    commission_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return await mark_commission_paid(db, commission_id)
