# app/api/v1/admin.py
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import require_admin
from app.core.activation import activate_user, deactivate_user
from app.core.roles import UserRole
from app.crud.user import list_profiles
from app.db.session import get_db
from app.models.user import User
from app.schemas.admin import ActivationResponse, AdminUserResponse

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=List[AdminUserResponse])
async def list_users(
    search: Optional[str] = Query(default=None, max_length=200),
    role: Optional[UserRole] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return await list_profiles(
        db,
        search=search,
        role=role.value if role else None,
        is_active=is_active,
        limit=limit,
        offset=offset,
    )


@router.get("/users/pending", response_model=List[AdminUserResponse])
async def pending_users(
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Profiles waiting for activation."""
    return await list_profiles(db, is_active=False, limit=limit)


@router.post("/users/{user_id}/activate", response_model=ActivationResponse)
async def activate(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> ActivationResponse:
    """
    Activate a profile. A sponsor code stored at signup is used to place it
    now; a placement failure is reported and the profile stays active.
    """
    admin_id = admin.id
    result = await activate_user(db, user_id, admin_id)

    user = await db.get(User, user_id, populate_existing=True)
    return ActivationResponse(
        user=AdminUserResponse.model_validate(user),
        placed=result.placed,
        message=result.message,
        placement_error=result.placement_error,
    )


@router.post("/users/{user_id}/deactivate", response_model=AdminUserResponse)
async def deactivate(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return await deactivate_user(db, user_id, admin.id)
