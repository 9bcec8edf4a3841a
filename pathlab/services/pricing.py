from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from pathlab.utils.validators import require_non_negative, require_percentage

HUNDRED = Decimal(100)


@dataclass(frozen=True)
class CartTotal:
    original_total: Decimal
    discount_amount: Decimal
    final_total: Decimal


def final_price(original_price: Decimal, discount_percentage: Optional[int]) -> Decimal:
    discount = discount_percentage or 0
    require_non_negative(original_price, "original_price")
    require_percentage(discount)
    return original_price * (HUNDRED - discount) / HUNDRED


def cart_totals(items: Iterable) -> CartTotal:
    original_total = Decimal(0)
    final_total = Decimal(0)
    for it in items:
        original_total += it.original_price
        final_total += it.final_price
    return CartTotal(
        original_total=original_total,
        discount_amount=original_total - final_total,
        final_total=final_total,
    )
