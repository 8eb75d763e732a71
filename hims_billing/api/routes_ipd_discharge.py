# FILE: hims_billing/api/routes_ipd_discharge.py
from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hims_billing.api.deps import get_db, get_finalizer
from hims_billing.core.errors import NotFoundError
from hims_billing.models.billing import DischargeRecord
from hims_billing.models.ipd import Admission, Room
from hims_billing.models.patient import Doctor, Patient
from hims_billing.schemas.discharge import (BreakdownOut, DischargeIn,
                                            DischargeReceipt,
                                            DischargeResultOut, ReceiptItem)
from hims_billing.services.charge_aggregate import Breakdown, DischargeInputs
from hims_billing.services.charge_sources import ChargeLineItem
from hims_billing.services.discharge_finalizer import (DischargeFinalizer,
                                                       cancel_admission)
from hims_billing.services.discharge_receipt import build_receipt
from hims_billing.utils.money import money2
from hims_billing.utils.timezone import utcnow, as_naive_utc

router = APIRouter(prefix="/ipd", tags=["IPD – Discharge Billing"])


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------
def _get_admission_or_404(db: Session,
                          admission_id: int,
                          *,
                          lock: bool = False) -> Admission:
    q = db.query(Admission).filter(Admission.id == admission_id)
    if lock:
        q = q.with_for_update()
    adm = q.first()
    if not adm:
        raise NotFoundError("Admission not found")
    return adm


def _context(
    db: Session, adm: Admission
) -> Tuple[Optional[Patient], Optional[Doctor], Optional[Room]]:
    patient = db.get(Patient, adm.patient_id) if adm.patient_id else None
    doctor = db.get(Doctor, adm.doctor_id) if adm.doctor_id else None
    room = db.get(Room, adm.room_id) if adm.room_id else None
    return patient, doctor, room


def _inputs(payload: DischargeIn) -> DischargeInputs:
    return DischargeInputs(
        discharge_at=as_naive_utc(payload.discharge_at)
        if payload.discharge_at else utcnow(),
        medical_charges=payload.medical_charges,
        medicine_charges=payload.medicine_charges,
        other_charges=payload.other_charges,
        discount_type=payload.discount_type,
        discount_value=payload.discount_value,
        additional_payment=payload.additional_payment,
        payment_method=payload.payment_method,
        final_diagnosis=payload.final_diagnosis,
        treatment_summary=payload.treatment_summary,
        medications=payload.medications,
        follow_up_instructions=payload.follow_up_instructions,
        discharge_notes=payload.discharge_notes,
    )


def _items_out(items: Iterable[ChargeLineItem]) -> List[ReceiptItem]:
    return [
        ReceiptItem(description=i.description,
                    amount=i.amount,
                    baby_name=i.baby_name,
                    is_estimate=i.is_estimate) for i in items
    ]


def _breakdown_out(adm: Admission, inputs: DischargeInputs,
                   bd: Breakdown) -> BreakdownOut:
    c = bd.charges
    return BreakdownOut(
        admission_id=adm.id,
        discharge_at=inputs.discharge_at,
        total_days=bd.stay_days,
        room_charges=c.room_charges,
        lab_charges=c.lab_charges,
        treatment_charges=c.treatment_charges,
        nicu_charges=c.nicu_charges,
        medical_charges=c.medical_charges,
        medicine_charges=c.medicine_charges,
        other_charges=c.other_charges,
        subtotal=c.subtotal,
        discount_type=bd.discount.discount_type.value
        if bd.discount.discount_type else None,
        discount_value=bd.discount.discount_value,
        discount_amount=bd.discount.discount_amount,
        total_charges=bd.final_total,
        deposit=money2(adm.deposit),
        additional_payment=money2(inputs.additional_payment),
        total_paid=bd.settlement.total_paid,
        balance_due=bd.settlement.balance_due,
        refund_amount=bd.settlement.refund_amount,
        payment_status=bd.settlement.payment_status.value,
        lab_items=_items_out(c.lab_items),
        treatment_items=_items_out(c.treatment_items),
        nicu_items=_items_out(c.nicu_items),
        warnings=list(bd.warnings),
    )


# ---------------------------------------------------------
# Preview (no writes)
# ---------------------------------------------------------
@router.post("/admissions/{admission_id}/discharge/preview",
             response_model=BreakdownOut)
def preview_discharge(
        admission_id: int,
        payload: DischargeIn,
        db: Session = Depends(get_db),
        finalizer: DischargeFinalizer = Depends(get_finalizer),
):
    adm = _get_admission_or_404(db, admission_id)
    patient, doctor, room = _context(db, adm)

    inputs = _inputs(payload)
    bd = finalizer.preview(adm, patient, doctor, room, inputs)
    return _breakdown_out(adm, inputs, bd)


# ---------------------------------------------------------
# Finalize
# ---------------------------------------------------------
@router.post("/admissions/{admission_id}/discharge",
             response_model=DischargeResultOut)
def finalize_discharge(
        admission_id: int,
        payload: DischargeIn,
        db: Session = Depends(get_db),
        finalizer: DischargeFinalizer = Depends(get_finalizer),
):
    # row lock serialises finalize/cancel for the same admission
    adm = _get_admission_or_404(db, admission_id, lock=True)
    patient, doctor, room = _context(db, adm)

    try:
        outcome = finalizer.finalize(db, adm, patient, doctor, room,
                                     _inputs(payload))
        db.commit()
    except Exception:
        db.rollback()
        raise

    return DischargeResultOut(
        message="Patient discharged successfully",
        discharge_number=outcome.discharge_number,
        persisted=outcome.persisted,
        warnings=outcome.warnings,
        receipt=outcome.receipt,
    )


# ---------------------------------------------------------
# Reprint (from the persisted record)
# ---------------------------------------------------------
@router.get("/admissions/{admission_id}/discharge-record",
            response_model=DischargeReceipt)
def get_discharge_record(
        admission_id: int,
        db: Session = Depends(get_db),
        finalizer: DischargeFinalizer = Depends(get_finalizer),
):
    adm = _get_admission_or_404(db, admission_id)
    if not finalizer.capabilities.discharge_records:
        raise NotFoundError("Discharge record not available")

    rec = (db.query(DischargeRecord).filter(
        DischargeRecord.admission_id == adm.id).first())
    if not rec:
        raise NotFoundError("Discharge record not available")

    patient, doctor, room = _context(db, adm)
    return build_receipt(rec,
                         admission=adm,
                         patient=patient,
                         doctor=doctor,
                         room=room)


# ---------------------------------------------------------
# Cancel admission
# ---------------------------------------------------------
@router.patch("/admissions/{admission_id}/cancel")
def cancel(
        admission_id: int,
        db: Session = Depends(get_db),
):
    _get_admission_or_404(db, admission_id, lock=True)
    try:
        adm = cancel_admission(db, admission_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Admission cancelled", "status": adm.status}
