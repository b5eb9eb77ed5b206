from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderCreate(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(default=1, ge=1, le=1000)
    points_to_redeem: int = Field(default=0, ge=0)


class PurchaseForUserRequest(BaseModel):
    """Admin purchase on behalf of a profile, addressed by its BRI id."""

    unique_user_id: str = Field(..., min_length=9, max_length=16)
    product_id: uuid.UUID
    quantity: int = Field(default=1, ge=1, le=1000)
    admin_notes: Optional[str] = Field(None, max_length=1000)


class OrderDecision(BaseModel):
    admin_notes: Optional[str] = Field(None, max_length=1000)


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    buyer_id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    points_earned: int
    points_redeemed: int = 0
    discount_amount: Decimal = Decimal("0.00")
    status: str

    admin_approved_by: Optional[uuid.UUID] = None
    admin_approved_at: Optional[datetime] = None
    admin_notes: Optional[str] = None

    created_at: datetime
    updated_at: datetime


class DistributionSummary(BaseModel):
    already_processed: bool
    commissions_created: int
    total_distributed: Decimal
    buyer_points_awarded: int
    unpaid_levels: list[int] = Field(default_factory=list)


class OrderApprovalResponse(BaseModel):
    order: OrderResponse
    distribution: DistributionSummary


class OrderRefundResponse(BaseModel):
    order: OrderResponse
    cancelled_commissions: int
    reversed_amount: Decimal


class PointsBalanceResponse(BaseModel):
    total_points: int
    point_value: Decimal


class PointsDiscountRequest(BaseModel):
    points: int = Field(..., gt=0)
    subtotal: Decimal = Field(..., gt=0)


class PointsDiscountResponse(BaseModel):
    points_to_redeem: int
    discount: Decimal
    subtotal: Decimal
    final_total: Decimal
    available_points: int
