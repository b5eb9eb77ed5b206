# backend/app/models/user.py
import re
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.core.roles import UserRole
from app.db.base import Base, utcnow

_UNIQUE_USER_ID_RE = re.compile(r"^BRI\d{6}$")


class User(Base):
    """
    One storefront profile and its node in the binary referral tree.

    Tree links are id references into this same table:
      - referred_by_id: placing parent, written once at placement time
      - left_child_id / right_child_id: at most one child per slot; each
        child id may appear in a single slot across the whole table
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_account_id", "account_id"),
        Index("ix_users_referred_by_id", "referred_by_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # External, human-facing id (BRI + 6 digits)
    unique_user_id: Mapped[str] = mapped_column(String(16), unique=True, index=True, nullable=False)

    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    profile_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)

    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.CUSTOMER.value)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_super_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    activated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    activated_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )

    # -----------------------------
    # Binary placement tree
    # -----------------------------
    referred_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    left_child_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True, unique=True
    )
    right_child_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True, unique=True
    )

    referral_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True, unique=True, index=True)
    # sponsor code kept until an admin activates the profile
    pending_referral_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)

    # -----------------------------
    # Points + earnings counters
    # total_earnings == pending_withdrawal + withdrawn_amount
    # -----------------------------
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_earnings: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default="0.00"
    )
    pending_withdrawal: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default="0.00"
    )
    withdrawn_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default="0.00"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    @property
    def user_role(self) -> UserRole:
        return UserRole(self.role)

    @property
    def is_pending(self) -> bool:
        return self.role == UserRole.PENDING.value

    @property
    def has_free_slot(self) -> bool:
        return self.left_child_id is None or self.right_child_id is None

    @staticmethod
    def is_valid_unique_user_id(value: str) -> bool:
        return bool(_UNIQUE_USER_ID_RE.match(value or ""))

    @staticmethod
    def normalize_name(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        v = " ".join(value.strip().split())
        return v or None
