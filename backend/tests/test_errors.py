# tests/test_errors.py
from __future__ import annotations

from decimal import Decimal

import pytest

from app.core.errors import (
    CommissionExceedsProfit,
    InsufficientPoints,
    InvalidCommissionStructure,
    InvalidWithdrawalAmount,
    SuperAdminProtected,
    TreeFull,
    UserAlreadyActive,
)


@pytest.mark.parametrize(
    "exc, expected",
    [
        (InvalidCommissionStructure("bad level"), 422),
        (CommissionExceedsProfit(Decimal("45"), Decimal("40")), 422),
        (InvalidWithdrawalAmount("negative"), 422),
        (TreeFull("full"), 409),
        (UserAlreadyActive("active"), 400),
        (SuperAdminProtected("nope"), 403),
        (InsufficientPoints("short"), 400),
    ],
)
def test_http_status_per_error(exc, expected):
    assert exc.http_status == expected


def test_detail_renders_decimals_as_strings():
    detail = CommissionExceedsProfit(Decimal("45.00"), Decimal("40.00")).to_detail()

    assert detail["error"] == "COMMISSION_EXCEEDS_PROFIT"
    assert detail["total_commission"] == "45.00"
    assert detail["available_margin"] == "40.00"
