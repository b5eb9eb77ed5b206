# backend/app/api/v1/auth.py
from __future__ import annotations

import secrets
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import get_current_account
from app.core.config import settings
from app.core.placement import place
from app.core.errors import InvalidReferralCode
from app.core.referral_codes import (
    allocate_unique_referral_code,
    allocate_unique_user_id,
    normalize_referral_code,
    resolve_sponsor_by_referral_code,
)
from app.core.roles import ShopkeeperRequestStatus, UserRole
from app.core.security import create_access_token
from app.crud.user import count_profiles_for_account, list_profiles_for_account
from app.db.base import as_utc, utcnow
from app.db.session import get_db
from app.models.account import Account
from app.models.shopkeeper_request import ShopkeeperRequest
from app.models.user import User
from app.schemas.auth import (
    MagicCodeRequest,
    MagicCodeVerify,
    MeResponse,
    ProfileCreateRequest,
    ProfileCreateResponse,
    ProfileResponse,
    TokenResponse,
)

router = APIRouter(prefix="/auth", tags=["auth"])

MAGIC_CODE_EXPIRY_MINUTES = 10


def _should_return_magic_code_in_response() -> bool:
    """
    In production the code only goes out by email. Elsewhere it is returned
    so the flow can be driven from Swagger or tests.
    """
    env = (settings.ENVIRONMENT or "").strip().lower()
    return env not in {"prod", "production"}


def _is_super_admin_email(email: str) -> bool:
    configured = (settings.SUPER_ADMIN_EMAIL or "").strip().lower()
    return bool(configured) and configured == (email or "").strip().lower()


async def purge_expired_magic_codes(db: AsyncSession) -> None:
    """
    Clear all expired magic codes globally.
    """
    stmt = (
        update(Account)
        .where(Account.magic_code_expires_at.is_not(None))
        .where(Account.magic_code_expires_at < utcnow())
        .values(magic_code=None, magic_code_expires_at=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(stmt)


@router.post("/request-code")
async def request_code(payload: MagicCodeRequest, db: AsyncSession = Depends(get_db)):
    """
    Body: {"email": "user@example.com"}
    Generates a magic code (stored on the account record).
    """
    email = Account.normalize_email(payload.email)

    await purge_expired_magic_codes(db)

    res = await db.execute(select(Account).where(Account.email == email))
    account = res.scalar_one_or_none()

    if account is None:
        account = Account(email=email, is_active=True)
        db.add(account)
        await db.flush()

    if not account.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account inactive")

    code = str(secrets.randbelow(900000) + 100000)  # 6 digits
    account.magic_code = code
    account.magic_code_expires_at = utcnow() + timedelta(minutes=MAGIC_CODE_EXPIRY_MINUTES)

    await db.commit()

    resp = {"status": "ok", "expires_in_minutes": MAGIC_CODE_EXPIRY_MINUTES}
    if _should_return_magic_code_in_response():
        resp["code"] = code
    return resp


@router.post("/verify-code", response_model=TokenResponse)
async def verify_code(payload: MagicCodeVerify, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    """
    Body: {"email":"user@example.com","code":"123456"}
    Returns: access_token (subject = account id)
    """
    email = Account.normalize_email(payload.email)
    code = payload.code.strip()

    if not code:
        raise HTTPException(status_code=400, detail="code is required")

    res = await db.execute(select(Account).where(Account.email == email))
    account = res.scalar_one_or_none()

    if not account or not account.magic_code or not account.magic_code_expires_at:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid code")

    if not secrets.compare_digest(account.magic_code, code):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid code")

    if as_utc(account.magic_code_expires_at) < utcnow():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Code expired")

    # One-time use
    account.magic_code = None
    account.magic_code_expires_at = None
    await db.commit()

    return TokenResponse(access_token=create_access_token(str(account.id)))


@router.get("/me", response_model=MeResponse)
async def me(
    db: AsyncSession = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> MeResponse:
    profiles = await list_profiles_for_account(db, account.id)
    return MeResponse(
        id=str(account.id),
        email=account.email,
        is_active=account.is_active,
        profiles=[ProfileResponse.model_validate(p) for p in profiles],
    )


@router.get("/profiles", response_model=list[ProfileResponse])
async def list_profiles(
    db: AsyncSession = Depends(get_db),
    account: Account = Depends(get_current_account),
):
    return await list_profiles_for_account(db, account.id)


@router.post("/profiles", response_model=ProfileCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_profile(
    payload: ProfileCreateRequest,
    db: AsyncSession = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> ProfileCreateResponse:
    """
    Create a storefront profile.

    - customer: active immediately; joins the tree when referral_code is given
    - customer with REQUIRE_PROFILE_ACTIVATION: inactive until an admin
      activates it; the referral_code is checked now and used at activation
    - shopkeeper + valid invite_token: approved as shopkeeper admin
    - shopkeeper without invite: pending, with a shopkeeper request for review
    - SUPER_ADMIN_EMAIL account: super admin shopkeeper, no review
    """
    existing = await count_profiles_for_account(db, account.id)
    if existing >= settings.MAX_PROFILES_PER_ACCOUNT:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "PROFILE_LIMIT_REACHED",
                "limit": settings.MAX_PROFILES_PER_ACCOUNT,
                "current": existing,
            },
        )

    super_admin = _is_super_admin_email(account.email)
    wants_shopkeeper = payload.role == UserRole.SHOPKEEPER
    pending = wants_shopkeeper and not payload.invite_token and not super_admin
    # customers wait for an admin; placement happens on activation
    deferred = settings.REQUIRE_PROFILE_ACTIVATION and not (wants_shopkeeper or super_admin or payload.invite_token)

    pending_referral_code = None
    if deferred and payload.referral_code:
        pending_referral_code = normalize_referral_code(payload.referral_code)
        if pending_referral_code is None or await resolve_sponsor_by_referral_code(db, pending_referral_code) is None:
            raise InvalidReferralCode(
                "Referral code does not match an active member", referral_code=payload.referral_code
            )

    profile = User(
        unique_user_id=await allocate_unique_user_id(db),
        account_id=account.id,
        name=payload.name,
        profile_name=payload.profile_name or payload.name,
        email=account.email,
        role=UserRole.PENDING.value if pending else UserRole.CUSTOMER.value,
        is_active=not deferred,
        pending_referral_code=pending_referral_code,
    )
    if super_admin:
        profile.role = UserRole.SHOPKEEPER.value
        profile.is_admin = True
        profile.is_super_admin = True
    if not pending:
        profile.referral_code = await allocate_unique_referral_code(db)

    # pending profiles cannot join the tree; super admins need no invite
    invite_token = None if (pending or super_admin) else payload.invite_token
    referral_code = None if (pending or deferred) else payload.referral_code

    request_row: ShopkeeperRequest | None = None
    placed = False
    placement_message: str | None = None
    try:
        db.add(profile)
        await db.flush()

        if pending:
            request_row = ShopkeeperRequest(
                user_id=profile.id,
                name=payload.name,
                email=account.email,
                message=payload.message,
                status=ShopkeeperRequestStatus.PENDING.value,
            )
            db.add(request_row)
            await db.flush()

        if referral_code or invite_token:
            # place() commits the profile together with the placement
            result = await place(db, profile.id, referral_code, invite_token=invite_token)
            placed = result.placed
            placement_message = result.message
        else:
            await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Profile could not be created; retry")

    await db.refresh(profile)
    logger.bind(
        account_id=str(account.id),
        user_id=str(profile.id),
        role=profile.role,
        placed=placed,
    ).info("Profile created")

    return ProfileCreateResponse(
        profile=ProfileResponse.model_validate(profile),
        placed=placed,
        placement_message=placement_message or ("Awaiting admin activation" if deferred else None),
        shopkeeper_request_id=request_row.id if request_row else None,
    )
