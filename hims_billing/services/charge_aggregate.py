# FILE: hims_billing/services/charge_aggregate.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from hims_billing.core.errors import ValidationError
from hims_billing.services.charge_sources import ChargeLineItem, CollectedCharges
from hims_billing.services.discount import DiscountResult, apply_discount
from hims_billing.services.payment_reconcile import Settlement, reconcile_payment
from hims_billing.utils.money import D, money2, ZERO
from hims_billing.utils.timezone import as_naive_utc

_DAY = timedelta(days=1)


@dataclass(frozen=True)
class DischargeInputs:
    """Everything the discharge desk enters. Immutable; recompute on change."""
    discharge_at: datetime
    medical_charges: Decimal = ZERO
    medicine_charges: Decimal = ZERO
    other_charges: Decimal = ZERO
    discount_type: Optional[str] = None  # percentage | fixed
    discount_value: Decimal = ZERO
    additional_payment: Decimal = ZERO
    payment_method: Optional[str] = None

    final_diagnosis: str = ""
    treatment_summary: str = ""
    medications: str = ""
    follow_up_instructions: str = ""
    discharge_notes: str = ""


@dataclass(frozen=True)
class ChargeBreakdown:
    room_charges: Decimal
    lab_charges: Decimal
    treatment_charges: Decimal
    nicu_charges: Decimal
    medical_charges: Decimal
    medicine_charges: Decimal
    other_charges: Decimal
    subtotal: Decimal
    lab_items: Tuple[ChargeLineItem, ...] = ()
    treatment_items: Tuple[ChargeLineItem, ...] = ()
    nicu_items: Tuple[ChargeLineItem, ...] = ()


@dataclass(frozen=True)
class Breakdown:
    stay_days: int
    charges: ChargeBreakdown
    discount: DiscountResult
    settlement: Settlement
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def final_total(self) -> Decimal:
        return self.discount.final_total


def compute_stay_days(admitted_at: datetime, discharge_at: datetime) -> int:
    """Started days between admission and discharge; same day counts as 1."""
    elapsed = as_naive_utc(discharge_at) - as_naive_utc(admitted_at)
    days = -(-elapsed // _DAY) if elapsed > timedelta(0) else 0
    return max(1, int(days))


def _non_negative(name: str, value) -> Decimal:
    v = D(value)
    if v < 0:
        raise ValidationError(f"{name} cannot be negative")
    return money2(v)


def aggregate_charges(room_charges, collected: CollectedCharges,
                      inputs: DischargeInputs) -> ChargeBreakdown:
    room = _non_negative("Room charges", room_charges)
    medical = _non_negative("Medical charges", inputs.medical_charges)
    medicine = _non_negative("Medicine charges", inputs.medicine_charges)
    other = _non_negative("Other charges", inputs.other_charges)

    lab = money2(collected.lab_total)
    treatment = money2(collected.treatment_total)
    nicu = money2(collected.nicu_total)

    subtotal = room + lab + treatment + nicu + medical + medicine + other

    return ChargeBreakdown(
        room_charges=room,
        lab_charges=lab,
        treatment_charges=treatment,
        nicu_charges=nicu,
        medical_charges=medical,
        medicine_charges=medicine,
        other_charges=other,
        subtotal=money2(subtotal),
        lab_items=tuple(collected.lab_items),
        treatment_items=tuple(collected.treatment_items),
        nicu_items=tuple(collected.nicu_items),
    )


def compute_breakdown(
    inputs: DischargeInputs,
    *,
    admitted_at: datetime,
    price_per_day,
    deposit,
    collected: CollectedCharges,
) -> Breakdown:
    """
    Pure: stay -> room charges -> subtotal -> discount -> settlement.
    Same inputs always give the same breakdown.
    """
    stay_days = compute_stay_days(admitted_at, inputs.discharge_at)
    room_charges = money2(D(price_per_day) * stay_days)

    charges = aggregate_charges(room_charges, collected, inputs)
    discount = apply_discount(charges.subtotal, inputs.discount_type,
                              inputs.discount_value)
    settlement = reconcile_payment(discount.final_total, deposit,
                                   inputs.additional_payment)

    return Breakdown(
        stay_days=stay_days,
        charges=charges,
        discount=discount,
        settlement=settlement,
        warnings=tuple(collected.warnings),
    )
