# app/core/roles.py

import enum


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"        # self-signup, may join the tree by referral code
    SHOPKEEPER = "shopkeeper"    # approved via invite token or super admin review
    PENDING = "pending"          # shopkeeper awaiting approval; cannot be placed or transact


class CommissionStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class OrderStatus(str, enum.Enum):
    PENDING_ADMIN_APPROVAL = "pending_admin_approval"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class ShopkeeperRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
