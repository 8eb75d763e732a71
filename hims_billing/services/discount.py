# FILE: hims_billing/services/discount.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from hims_billing.core.errors import ValidationError
from hims_billing.models.billing import DiscountType
from hims_billing.utils.money import D, money2, ZERO


@dataclass(frozen=True)
class DiscountResult:
    discount_type: Optional[DiscountType]
    discount_value: Decimal
    discount_amount: Decimal
    final_total: Decimal


def _discount_type(x: Union[str, DiscountType, None]) -> Optional[DiscountType]:
    if x is None or x == "":
        return None
    if isinstance(x, DiscountType):
        return x
    try:
        return DiscountType(str(x).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown discount type: {x}")


def apply_discount(subtotal, discount_type=None, value=0) -> DiscountResult:
    """
    percentage -> subtotal * value / 100
    fixed      -> value
    Both clamped to the subtotal, so final_total never goes below zero.
    """
    subtotal = D(subtotal)
    value = D(value)
    dtype = _discount_type(discount_type)

    if subtotal < 0:
        raise ValidationError("Subtotal cannot be negative")
    if value < 0:
        raise ValidationError("Discount value cannot be negative")

    if dtype is None or value == 0:
        amount = ZERO
    elif dtype == DiscountType.PERCENTAGE:
        amount = subtotal * value / Decimal("100")
    else:
        amount = value

    amount = min(money2(amount), subtotal)

    return DiscountResult(
        discount_type=dtype,
        discount_value=value,
        discount_amount=amount,
        final_total=subtotal - amount,
    )
