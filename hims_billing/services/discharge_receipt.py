# FILE: hims_billing/services/discharge_receipt.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from hims_billing.models.billing import DischargeRecord
from hims_billing.models.ipd import Admission, Room
from hims_billing.models.patient import Doctor, Patient
from hims_billing.schemas.discharge import DischargeReceipt, ReceiptItem
from hims_billing.utils.money import format_currency, money2

_MONEY_FIELDS = (
    "room_charges",
    "lab_charges",
    "treatment_charges",
    "nicu_charges",
    "medical_charges",
    "medicine_charges",
    "other_charges",
    "discount_amount",
    "subtotal",
    "total_charges",
    "deposit_paid",
    "additional_payment",
    "total_paid",
    "balance_due",
    "refund_amount",
)


def _items(raw: Optional[Dict[str, Any]], key: str) -> List[ReceiptItem]:
    out = []
    for it in (raw or {}).get(key) or []:
        out.append(
            ReceiptItem(
                description=it.get("description") or "",
                amount=money2(it.get("amount")),
                baby_name=it.get("baby_name"),
                is_estimate=bool(it.get("is_estimate")),
            ))
    return out


def build_receipt(
    record: DischargeRecord,
    *,
    admission: Admission,
    patient: Patient,
    doctor: Optional[Doctor],
    room: Optional[Room],
) -> DischargeReceipt:
    """
    Printable DTO from a discharge record. Works for both a persisted row
    (reprint) and the in-memory record of an unpersisted discharge.
    """
    mother_name = None
    if patient.is_newborn and patient.mother is not None:
        mother_name = patient.mother.name

    receipt = DischargeReceipt(
        discharge_number=record.discharge_number,
        admission_id=admission.id,
        patient_name=patient.name,
        mr_number=patient.mr_number,
        age=patient.age,
        gender=patient.gender,
        contact=patient.contact,
        is_newborn=bool(patient.is_newborn),
        mother_name=mother_name,
        admission_date=admission.admitted_at,
        discharge_date=record.discharge_at,
        total_days=record.total_days,
        room_number=room.room_number if room else None,
        room_type=room.type if room else None,
        doctor_name=doctor.name if doctor else None,
        room_charges=money2(record.room_charges),
        lab_charges=money2(record.lab_charges),
        treatment_charges=money2(record.treatment_charges),
        nicu_charges=money2(record.nicu_charges),
        medical_charges=money2(record.medical_charges),
        medicine_charges=money2(record.medicine_charges),
        other_charges=money2(record.other_charges),
        discount_type=record.discount_type,
        discount_value=money2(record.discount_value),
        discount_amount=money2(record.discount_amount),
        subtotal=money2(record.subtotal),
        total_charges=money2(record.total_charges),
        deposit_paid=money2(record.deposit),
        additional_payment=money2(record.additional_payment),
        total_paid=money2(record.total_paid),
        balance_due=money2(record.balance_due),
        refund_amount=money2(record.refund_amount),
        payment_method=record.payment_method,
        payment_status=record.payment_status,
        final_diagnosis=record.final_diagnosis or "",
        treatment_summary=record.treatment_summary or "",
        medications=record.medications or "",
        follow_up_instructions=record.follow_up_instructions or "",
        discharge_notes=record.discharge_notes or "",
        lab_items=_items(record.items, "lab"),
        treatment_items=_items(record.items, "treatment"),
        nicu_items=_items(record.items, "nicu"),
    )
    receipt.display = {
        f: format_currency(getattr(receipt, f))
        for f in _MONEY_FIELDS
    }
    return receipt
