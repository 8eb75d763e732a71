# FILE: hims_billing/utils/money.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from hims_billing.core.config import settings

Q2 = Decimal("0.01")
ZERO = Decimal("0")


def D(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    try:
        return Decimal(str(x if x is not None else 0))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def money2(x) -> Decimal:
    return D(x).quantize(Q2, rounding=ROUND_HALF_UP)


def format_currency(amount, prefix: str | None = None) -> str:
    """
    Display string for an amount: "Rs 12,500" / "Rs 1,234.50".
    None -> "Rs 0".
    """
    prefix = settings.CURRENCY_PREFIX if prefix is None else prefix
    value = money2(amount)
    sign = "-" if value < 0 else ""
    value = abs(value)
    if value == value.to_integral_value():
        body = f"{int(value):,}"
    else:
        body = f"{value:,.2f}"
    return f"{prefix} {sign}{body}".strip()
