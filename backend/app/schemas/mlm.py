from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReferralCodeResponse(BaseModel):
    referral_code: str
    referral_link: str
    created: bool = False


class JoinTreeRequest(BaseModel):
    referral_code: Optional[str] = Field(default=None, max_length=32)
    invite_token: Optional[str] = Field(default=None, max_length=128)


class PlacementResponse(BaseModel):
    user_id: uuid.UUID
    unique_user_id: str
    role: str
    placed: bool
    sponsor_id: Optional[uuid.UUID] = None
    parent_id: Optional[uuid.UUID] = None
    position: Optional[Literal["left", "right"]] = None
    depth: int = 0
    message: str


class MemberResponse(BaseModel):
    """Public view of another profile in the tree."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    unique_user_id: str
    name: str
    profile_name: str
    role: str
    referral_code: Optional[str] = None
    total_points: int
    total_earnings: Decimal
    created_at: datetime


class UplineMember(MemberResponse):
    level: int


class DownlineMemberResponse(MemberResponse):
    depth: int
    parent_id: uuid.UUID
    position: Literal["left", "right"]


class DirectDownlineResponse(BaseModel):
    left: Optional[MemberResponse] = None
    right: Optional[MemberResponse] = None
    count: int = 0


class CompleteDownlineResponse(BaseModel):
    items: list[DownlineMemberResponse]
    total: int
    max_depth: int


class TreeNodeResponse(BaseModel):
    id: uuid.UUID
    unique_user_id: str
    name: str
    referral_code: Optional[str] = None
    total_earnings: Decimal
    depth: int
    has_children: bool = False
    left: Optional["TreeNodeResponse"] = None
    right: Optional["TreeNodeResponse"] = None


class CommissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    beneficiary_id: uuid.UUID
    from_user_id: uuid.UUID
    order_id: uuid.UUID
    product_id: uuid.UUID
    level: int
    amount: Decimal
    status: str
    created_at: datetime
    updated_at: datetime


class CommissionListResponse(BaseModel):
    items: list[CommissionResponse]
    total: int
    limit: int
    offset: int


class CommissionSummaryResponse(BaseModel):
    user_id: uuid.UUID
    total_points: int
    total_earnings: Decimal
    pending_withdrawal: Decimal
    withdrawn_amount: Decimal

    total_commissions: Decimal
    pending_commissions: Decimal
    paid_commissions: Decimal
    cancelled_commissions: Decimal
    counts: dict[str, int] = Field(default_factory=dict)

    direct_referrals: int = 0
