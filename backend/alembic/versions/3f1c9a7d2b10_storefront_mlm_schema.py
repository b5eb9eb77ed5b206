"""storefront accounts, profiles tree, catalog, orders and commission ledger

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f1c9a7d2b10"
down_revision = None
branch_labels = None
depends_on = None


def _uuid(name: str, *args, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, **kwargs)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def _money(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=False, server_default="0.00", **kwargs)


def upgrade() -> None:
    # -----------------------------------------------------
    # 1) Accounts (login identity)
    # -----------------------------------------------------
    op.create_table(
        "accounts",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("magic_code", sa.String(length=64), nullable=True),
        sa.Column("magic_code_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_accounts_email", "accounts", ["email"], unique=True)

    # -----------------------------------------------------
    # 2) Users (storefront profiles + binary tree)
    # -----------------------------------------------------
    op.create_table(
        "users",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("unique_user_id", sa.String(length=16), nullable=False),
        _uuid("account_id", sa.ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("profile_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="customer"),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_super_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        _uuid("activated_by_id", sa.ForeignKey("users.id"), nullable=True),
        _uuid("referred_by_id", sa.ForeignKey("users.id"), nullable=True),
        _uuid("left_child_id", sa.ForeignKey("users.id"), nullable=True),
        _uuid("right_child_id", sa.ForeignKey("users.id"), nullable=True),
        sa.Column("referral_code", sa.String(length=8), nullable=True),
        sa.Column("pending_referral_code", sa.String(length=8), nullable=True),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
        _money("total_earnings"),
        _money("pending_withdrawal"),
        _money("withdrawn_amount"),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("left_child_id", name="uq_users_left_child_id"),
        sa.UniqueConstraint("right_child_id", name="uq_users_right_child_id"),
    )
    op.create_index("ix_users_unique_user_id", "users", ["unique_user_id"], unique=True)
    op.create_index("ix_users_referral_code", "users", ["referral_code"], unique=True)
    op.create_index("ix_users_account_id", "users", ["account_id"])
    op.create_index("ix_users_referred_by_id", "users", ["referred_by_id"])

    # -----------------------------------------------------
    # 3) Catalog + orders
    # -----------------------------------------------------
    op.create_table(
        "products",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=100), nullable=False, server_default="general"),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        _money("cost"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("buyer_reward_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "commission_structure",
            sa.JSON(),
            nullable=False,
            server_default=sa.text("'[]'::json"),
        ),
        _money("total_commission"),
        _money("profit_margin"),
        _uuid("shopkeeper_id", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_products_name", "products", ["name"])
    op.create_index("ix_products_category", "products", ["category"])
    op.create_index("ix_products_is_active", "products", ["is_active"])

    op.create_table(
        "orders",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("buyer_id", sa.ForeignKey("users.id"), nullable=False),
        _uuid("product_id", sa.ForeignKey("products.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("points_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points_redeemed", sa.Integer(), nullable=False, server_default="0"),
        _money("discount_amount"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending_admin_approval"),
        _uuid("admin_approved_by", sa.ForeignKey("users.id"), nullable=True),
        sa.Column("admin_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_orders_buyer_id", "orders", ["buyer_id"])
    op.create_index("ix_orders_product_id", "orders", ["product_id"])
    op.create_index("ix_orders_buyer_created", "orders", ["buyer_id", "created_at"])
    op.create_index("ix_orders_status", "orders", ["status"])

    # -----------------------------------------------------
    # 4) Commission ledger
    # -----------------------------------------------------
    op.create_table(
        "commissions",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("beneficiary_id", sa.ForeignKey("users.id"), nullable=False),
        _uuid("from_user_id", sa.ForeignKey("users.id"), nullable=False),
        _uuid("order_id", sa.ForeignKey("orders.id"), nullable=False),
        _uuid("product_id", sa.ForeignKey("products.id"), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("order_id", "level", name="uq_commissions_order_level"),
        sa.CheckConstraint("level >= 1 AND level <= 20", name="ck_commissions_level_range"),
        sa.CheckConstraint("amount >= 0", name="ck_commissions_amount_non_negative"),
    )
    op.create_index("ix_commissions_beneficiary_id", "commissions", ["beneficiary_id"])
    op.create_index("ix_commissions_from_user_id", "commissions", ["from_user_id"])
    op.create_index("ix_commissions_order_id", "commissions", ["order_id"])
    op.create_index("ix_commissions_product_id", "commissions", ["product_id"])
    op.create_index("ix_commissions_status", "commissions", ["status"])
    op.create_index("ix_commissions_beneficiary_status", "commissions", ["beneficiary_id", "status"])
    op.create_index("ix_commissions_beneficiary_created", "commissions", ["beneficiary_id", "created_at"])

    op.create_table(
        "order_distributions",
        _uuid("order_id", sa.ForeignKey("orders.id"), primary_key=True, nullable=False),
        _uuid("buyer_id", sa.ForeignKey("users.id"), nullable=False),
        sa.Column("records_created", sa.Integer(), nullable=False, server_default="0"),
        _money("total_amount"),
        sa.Column("processed_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    op.create_table(
        "withdrawals",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("user_id", sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        _uuid("processed_by_id", sa.ForeignKey("users.id"), nullable=True),
        sa.Column("note", sa.String(length=500), nullable=True),
        _created_at(),
        sa.CheckConstraint("amount > 0", name="ck_withdrawals_amount_positive"),
    )
    op.create_index("ix_withdrawals_user_created", "withdrawals", ["user_id", "created_at"])

    # -----------------------------------------------------
    # 5) Shopkeeper onboarding
    # -----------------------------------------------------
    op.create_table(
        "invite_tokens",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        _uuid("created_by_id", sa.ForeignKey("users.id"), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _uuid("used_by_id", sa.ForeignKey("users.id"), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("note", sa.String(length=500), nullable=True),
        _created_at(),
    )
    op.create_index("ix_invite_tokens_token_hash", "invite_tokens", ["token_hash"], unique=True)

    op.create_table(
        "shopkeeper_requests",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("user_id", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("message", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        _uuid("reviewed_by_id", sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(length=200), nullable=True),
        _created_at(),
    )
    op.create_index("ix_shopkeeper_requests_user_id", "shopkeeper_requests", ["user_id"])
    op.create_index("ix_shopkeeper_requests_email_status", "shopkeeper_requests", ["email", "status"])


def downgrade() -> None:
    op.drop_table("shopkeeper_requests")
    op.drop_table("invite_tokens")
    op.drop_table("withdrawals")
    op.drop_table("order_distributions")
    op.drop_table("commissions")
    op.drop_table("orders")
    op.drop_table("products")
    op.drop_table("users")
    op.drop_table("accounts")
