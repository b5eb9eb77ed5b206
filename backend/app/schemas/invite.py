from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class InviteCreate(BaseModel):
    expires_in_hours: int = Field(default=72, ge=1)
    note: Optional[str] = Field(None, max_length=500)


class InviteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_by_id: Optional[uuid.UUID] = None
    expires_at: datetime
    used: bool
    used_by_id: Optional[uuid.UUID] = None
    used_at: Optional[datetime] = None
    note: Optional[str] = None
    created_at: datetime


class InviteCreateResponse(InviteResponse):
    # Raw token is only ever returned here; the database keeps its hash.
    token: str
    signup_link: str


class ShopkeeperRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    name: str
    email: Optional[str] = None
    message: Optional[str] = None
    status: str
    reviewed_by_id: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime


class ShopkeeperRequestReject(BaseModel):
    reason: Optional[str] = Field(None, max_length=200)
