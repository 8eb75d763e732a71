# FILE: hims_billing/services/payment_reconcile.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from hims_billing.core.errors import ValidationError
from hims_billing.models.billing import PaymentStatus
from hims_billing.utils.money import money2, ZERO


@dataclass(frozen=True)
class Settlement:
    total_paid: Decimal
    balance_due: Decimal
    refund_amount: Decimal
    payment_status: PaymentStatus


def reconcile_payment(final_total, deposit, additional_payment) -> Settlement:
    """
    Settle the discounted total against deposit + payment taken at discharge.

    diff > 0  -> balance due (partial if something was paid now, else pending)
    diff < 0  -> refund
    diff == 0 -> settled
    """
    # quantise first so every field of the bill is already in paise
    final_total = money2(final_total)
    deposit = money2(deposit)
    additional_payment = money2(additional_payment)

    if deposit < 0 or additional_payment < 0:
        raise ValidationError("Payments cannot be negative")
    if final_total < 0:
        raise ValidationError("Final total cannot be negative")

    total_paid = deposit + additional_payment
    diff = final_total - total_paid

    if diff > 0:
        balance_due, refund = diff, ZERO
    elif diff < 0:
        balance_due, refund = ZERO, -diff
    else:
        balance_due, refund = ZERO, ZERO

    if diff <= 0:
        status = PaymentStatus.PAID
    elif additional_payment > 0:
        status = PaymentStatus.PARTIAL
    else:
        status = PaymentStatus.PENDING

    return Settlement(
        total_paid=total_paid,
        balance_due=balance_due,
        refund_amount=refund,
        payment_status=status,
    )
