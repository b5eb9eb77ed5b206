# app/core/commission_table.py
"""
Per-product commission tables.

A table is a list of {"level": int, "amount": money} entries. Level 1 is the
buyer's placing parent, level 2 that parent's parent, and so on. A table is
accepted only if the amounts fit inside the product's margin (price - cost).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from app.core.config import settings
from app.core.errors import CommissionExceedsProfit, InvalidCommissionStructure
from app.models.product import Product

MONEY_QUANT = Decimal("0.01")
MAX_LEVEL = 20


@dataclass(frozen=True)
class CommissionLevel:
    level: int
    amount: Decimal


def to_money(value: Any) -> Decimal:
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidCommissionStructure(f"Invalid monetary amount: {value!r}")
    if not d.is_finite():
        raise InvalidCommissionStructure(f"Invalid monetary amount: {value!r}")
    return d.quantize(MONEY_QUANT)


def _entry_fields(entry: Any) -> tuple[Any, Any]:
    if isinstance(entry, Mapping):
        return entry.get("level"), entry.get("amount")
    return getattr(entry, "level", None), getattr(entry, "amount", None)


def parse_structure(raw: Iterable[Any] | None) -> list[CommissionLevel]:
    entries: list[CommissionLevel] = []
    for entry in raw or []:
        level, amount = _entry_fields(entry)
        if isinstance(level, bool) or not isinstance(level, int):
            raise InvalidCommissionStructure(f"Commission level must be an integer, got {level!r}")
        if amount is None:
            raise InvalidCommissionStructure(f"Commission level {level} has no amount")
        entries.append(CommissionLevel(level=level, amount=to_money(amount)))
    return entries


def total_commission(entries: Iterable[CommissionLevel]) -> Decimal:
    return sum((e.amount for e in entries), Decimal("0.00")).quantize(MONEY_QUANT)


def validate(
    structure: Iterable[Any] | None,
    price: Any,
    cost: Any,
) -> list[CommissionLevel]:
    """
    Check a commission table and return it normalized (sorted by level).

    Raises:
      InvalidCommissionStructure: too many entries, level outside 1..20,
        duplicate level, negative amount.
      CommissionExceedsProfit: sum(amount) > price - cost.
    """
    entries = parse_structure(structure)
    max_levels = min(settings.MLM_MAX_COMMISSION_LEVELS, MAX_LEVEL)

    if len(entries) > max_levels:
        raise InvalidCommissionStructure(
            f"At most {max_levels} commission levels are allowed",
            entries=len(entries),
        )

    seen: set[int] = set()
    for e in entries:
        if not 1 <= e.level <= max_levels:
            raise InvalidCommissionStructure(f"Commission level {e.level} is outside 1..{max_levels}", level=e.level)
        if e.level in seen:
            raise InvalidCommissionStructure(f"Commission level {e.level} appears more than once", level=e.level)
        if e.amount < 0:
            raise InvalidCommissionStructure(f"Commission amount for level {e.level} is negative", level=e.level)
        seen.add(e.level)

    total = total_commission(entries)
    available = (to_money(price) - to_money(cost)).quantize(MONEY_QUANT)
    # An empty (or all-zero) table pays nothing, whatever the margin is.
    if total > 0 and total > available:
        raise CommissionExceedsProfit(total=total, available=available)

    return sorted(entries, key=lambda e: e.level)


def resolve(product: Product) -> dict[int, Decimal]:
    """
    Payable levels of a product's table, ascending by level. Zero-amount
    levels are dropped; levels absent from the table are implicitly zero.
    The stored table is re-validated against the current price and cost.
    """
    entries = validate(product.commission_structure, product.price, product.cost)
    return {e.level: e.amount for e in entries if e.amount > 0}


def serialize(entries: Iterable[CommissionLevel]) -> list[dict[str, Any]]:
    return [{"level": e.level, "amount": str(e.amount)} for e in entries]


def apply_commission_structure(
    product: Product,
    structure: Iterable[Any] | None,
    *,
    price: Any = None,
    cost: Any = None,
) -> list[CommissionLevel]:
    """
    Validate and write a table (optionally with a new price/cost) onto the
    product, refreshing total_commission and profit_margin. Nothing on the
    product changes when validation fails.
    """
    new_price = to_money(price if price is not None else product.price)
    new_cost = to_money(cost if cost is not None else product.cost)

    entries = validate(structure, new_price, new_cost)
    total = total_commission(entries)

    product.price = new_price
    product.cost = new_cost
    product.commission_structure = serialize(entries)
    product.total_commission = total
    product.profit_margin = (new_price - new_cost - total).quantize(MONEY_QUANT)
    return entries
