# app/core/errors.py
from __future__ import annotations

from decimal import Decimal
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger


class MLMError(Exception):
    """
    Base class for typed failures raised by the placement / commission core.

    Rendered by the API as:
      {"detail": {"error": <code>, "message": <message>, **extra}}
    """

    code = "MLM_ERROR"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.__class__.__doc__ or self.code
        self.extra = extra
        super().__init__(self.message)

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"error": self.code, "message": self.message}
        for k, v in self.extra.items():
            detail[k] = str(v) if isinstance(v, Decimal) else v
        return detail


# -----------------------------
# Placement
# -----------------------------
class InvalidReferralCode(MLMError):
    code = "INVALID_REFERRAL_CODE"
    http_status = status.HTTP_400_BAD_REQUEST


class TreeFull(MLMError):
    code = "TREE_FULL"
    http_status = status.HTTP_409_CONFLICT


class PlacementContention(MLMError):
    """Retryable: concurrent signups kept claiming the chosen slot."""

    code = "PLACEMENT_CONTENTION"
    http_status = status.HTTP_409_CONFLICT


class UserNotFound(MLMError):
    code = "USER_NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND


class UserAlreadyPlaced(MLMError):
    code = "USER_ALREADY_PLACED"
    http_status = status.HTTP_409_CONFLICT


class IneligibleUser(MLMError):
    code = "INELIGIBLE_USER"
    http_status = status.HTTP_403_FORBIDDEN


class ReferralLoop(MLMError):
    code = "REFERRAL_LOOP"
    http_status = status.HTTP_400_BAD_REQUEST


# -----------------------------
# Profile status
# -----------------------------
class UserAlreadyActive(MLMError):
    code = "USER_ALREADY_ACTIVE"
    http_status = status.HTTP_400_BAD_REQUEST


class UserAlreadyInactive(MLMError):
    code = "USER_ALREADY_INACTIVE"
    http_status = status.HTTP_400_BAD_REQUEST


class SuperAdminProtected(MLMError):
    code = "SUPER_ADMIN_PROTECTED"
    http_status = status.HTTP_403_FORBIDDEN


# -----------------------------
# Loyalty points
# -----------------------------
class InsufficientPoints(MLMError):
    code = "INSUFFICIENT_POINTS"
    http_status = status.HTTP_400_BAD_REQUEST


# -----------------------------
# Commission tables
# -----------------------------
class InvalidCommissionStructure(MLMError):
    code = "INVALID_COMMISSION_STRUCTURE"
    http_status = 422


class CommissionExceedsProfit(MLMError):
    code = "COMMISSION_EXCEEDS_PROFIT"
    http_status = 422

    def __init__(self, total: Decimal, available: Decimal) -> None:
        super().__init__(
            f"Total commission {total} exceeds available margin {available}",
            total_commission=total,
            available_margin=available,
        )
        self.total = total
        self.available = available


# -----------------------------
# Distribution
# -----------------------------
class ProductNotFound(MLMError):
    code = "PRODUCT_NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND


class OrderNotFound(MLMError):
    code = "ORDER_NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND


# -----------------------------
# Ledger
# -----------------------------
class InsufficientPendingBalance(MLMError):
    code = "INSUFFICIENT_PENDING_BALANCE"
    http_status = status.HTTP_400_BAD_REQUEST


class InvalidWithdrawalAmount(MLMError):
    code = "INVALID_WITHDRAWAL_AMOUNT"
    http_status = 422


class CommissionNotFound(MLMError):
    code = "COMMISSION_NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND


class RecordNotCancellable(MLMError):
    code = "RECORD_NOT_CANCELLABLE"
    http_status = status.HTTP_409_CONFLICT


class RecordNotPayable(MLMError):
    code = "RECORD_NOT_PAYABLE"
    http_status = status.HTTP_409_CONFLICT


class InconsistentLedger(MLMError):
    """Fatal: a prior invariant violation was detected. Never auto-corrected."""

    code = "INCONSISTENT_LEDGER"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR


class DuplicateOrderDistribution(MLMError):
    """Idempotency guard hit; callers treat this as success."""

    code = "DUPLICATE_ORDER_DISTRIBUTION"
    http_status = status.HTTP_200_OK


async def _mlm_error_handler(request: Request, exc: MLMError) -> JSONResponse:
    if isinstance(exc, InconsistentLedger):
        logger.bind(
            path=request.url.path,
            **exc.to_detail(),
        ).critical("Ledger inconsistency surfaced to caller")
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.to_detail()})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MLMError, _mlm_error_handler)
