from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CommissionLevelIn(BaseModel):
    level: int = Field(..., ge=1, le=20)
    amount: Decimal = Field(..., ge=0)


class CommissionLevelOut(BaseModel):
    level: int
    amount: Decimal


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    category: str = Field(default="general", min_length=1, max_length=100)
    image_url: Optional[str] = Field(None, max_length=500)

    price: Decimal = Field(..., gt=0)
    cost: Decimal = Field(default=Decimal("0.00"), ge=0)

    points: int = Field(default=0, ge=0)
    buyer_reward_points: int = Field(default=0, ge=0)
    stock: int = Field(default=0, ge=0)


class ProductCreate(ProductBase):
    commission_structure: list[CommissionLevelIn] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    image_url: Optional[str] = Field(None, max_length=500)

    # price/cost changes are re-validated against the current commission table
    price: Optional[Decimal] = Field(None, gt=0)
    cost: Optional[Decimal] = Field(None, ge=0)

    points: Optional[int] = Field(None, ge=0)
    buyer_reward_points: Optional[int] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    is_active: bool
    shopkeeper_id: Optional[uuid.UUID] = None

    commission_structure: list[CommissionLevelOut] = Field(default_factory=list)
    total_commission: Decimal
    profit_margin: Decimal

    created_at: datetime
    updated_at: datetime


class CommissionStructureUpdate(BaseModel):
    commission_structure: list[CommissionLevelIn]
    price: Optional[Decimal] = Field(None, gt=0)
    cost: Optional[Decimal] = Field(None, ge=0)


class CommissionStructureResponse(BaseModel):
    product_id: uuid.UUID
    price: Decimal
    cost: Decimal
    available_margin: Decimal
    total_commission: Decimal
    profit_margin: Decimal
    commission_structure: list[CommissionLevelOut]
