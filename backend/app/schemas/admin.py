from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from app.schemas.auth import ProfileResponse


class AdminUserResponse(ProfileResponse):
    account_id: Optional[uuid.UUID] = None
    pending_referral_code: Optional[str] = None
    activated_at: Optional[datetime] = None
    activated_by_id: Optional[uuid.UUID] = None

    total_earnings: Decimal
    created_at: datetime


class ActivationResponse(BaseModel):
    user: AdminUserResponse
    placed: bool
    message: str
    placement_error: Optional[str] = None
