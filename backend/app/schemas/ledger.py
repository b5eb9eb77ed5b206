from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WithdrawalRequest(BaseModel):
    user_id: uuid.UUID
    # positivity is enforced by the ledger (INVALID_WITHDRAWAL_AMOUNT)
    amount: Decimal
    note: Optional[str] = Field(None, max_length=500)


class WithdrawalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    amount: Decimal
    processed_by_id: Optional[uuid.UUID] = None
    note: Optional[str] = None
    created_at: datetime

    pending_withdrawal: Decimal
    withdrawn_amount: Decimal
    total_earnings: Decimal
