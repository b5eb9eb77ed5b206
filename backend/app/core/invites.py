# app/core/invites.py
from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import as_utc, utcnow
from app.models.invite_token import InviteToken

DEFAULT_INVITE_EXPIRY_HOURS = 72


def generate_invite_token() -> str:
    return secrets.token_hex(32)


def hash_invite_token(token: str) -> str:
    return hashlib.sha256(token.strip().encode("utf-8")).hexdigest()


def new_invite(
    created_by_id: uuid.UUID | None,
    expires_in_hours: int = DEFAULT_INVITE_EXPIRY_HOURS,
    note: str | None = None,
) -> tuple[str, InviteToken]:
    """
    Returns (raw_token, row). Only the hash is persisted; the raw token must
    be handed back to the caller once and never stored.
    """
    raw = generate_invite_token()
    row = InviteToken(
        token_hash=hash_invite_token(raw),
        created_by_id=created_by_id,
        expires_at=utcnow() + timedelta(hours=expires_in_hours),
        used=False,
        note=note,
    )
    return raw, row


def is_invite_expired(invite: InviteToken) -> bool:
    return as_utc(invite.expires_at) < utcnow()


async def find_valid_invite(
    db: AsyncSession,
    raw_token: str | None,
    *,
    lock: bool = False,
) -> Optional[InviteToken]:
    """Unused, unexpired invite matching `raw_token`, or None."""
    if not raw_token or not raw_token.strip():
        return None

    stmt = select(InviteToken).where(
        InviteToken.token_hash == hash_invite_token(raw_token),
        InviteToken.used.is_(False),
    )
    if lock:
        stmt = stmt.with_for_update()

    invite = (await db.execute(stmt)).scalar_one_or_none()
    if invite is None or is_invite_expired(invite):
        return None
    return invite


def mark_invite_used(invite: InviteToken, used_by_id: uuid.UUID) -> None:
    invite.used = True
    invite.used_by_id = used_by_id
    invite.used_at = utcnow()
