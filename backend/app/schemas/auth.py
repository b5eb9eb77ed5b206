# backend/app/schemas/auth.py
from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.roles import UserRole


def _normalize_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = " ".join(value.strip().split())
    return v or None


class MagicCodeRequest(BaseModel):
    email: EmailStr


class MagicCodeVerify(BaseModel):
    email: EmailStr
    code: str = Field(min_length=4, max_length=64)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ProfileCreateRequest(BaseModel):
    """
    New storefront profile under the signed-in account.

    role="shopkeeper" needs a valid invite_token to be approved right away;
    otherwise the profile is created pending and a shopkeeper request is filed.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=200)
    profile_name: Optional[str] = Field(default=None, max_length=200)
    role: UserRole = UserRole.CUSTOMER
    referral_code: Optional[str] = Field(default=None, max_length=32)
    invite_token: Optional[str] = Field(default=None, max_length=128)
    message: Optional[str] = Field(default=None, max_length=500)

    @field_validator("name", "profile_name")
    @classmethod
    def validate_names(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_name(v)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: UserRole) -> UserRole:
        if v == UserRole.PENDING:
            raise ValueError("role must be customer or shopkeeper")
        return v


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    unique_user_id: str
    name: str
    profile_name: str
    email: Optional[str] = None
    role: str
    is_admin: bool
    is_super_admin: bool
    is_active: bool

    referral_code: Optional[str] = None
    referred_by_id: Optional[uuid.UUID] = None
    left_child_id: Optional[uuid.UUID] = None
    right_child_id: Optional[uuid.UUID] = None

    total_points: int


class ProfileCreateResponse(BaseModel):
    profile: ProfileResponse
    placed: bool = False
    placement_message: Optional[str] = None
    shopkeeper_request_id: Optional[uuid.UUID] = None


class MeResponse(BaseModel):
    id: str
    email: EmailStr
    is_active: bool
    profiles: list[ProfileResponse] = Field(default_factory=list)
