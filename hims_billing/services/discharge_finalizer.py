# FILE: hims_billing/services/discharge_finalizer.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hims_billing.core.errors import (ConflictError, DegradedCapabilityError,
                                      NotFoundError, ValidationError)
from hims_billing.models.billing import DischargeRecord
from hims_billing.models.ipd import (Admission, Room, ADMISSION_ACTIVE,
                                     ADMISSION_CANCELLED, ADMISSION_DISCHARGED)
from hims_billing.models.patient import Doctor, Patient
from hims_billing.schemas.discharge import DischargeReceipt
from hims_billing.services.billing_numbers import (IdentifierGenerator,
                                                   select_identifier_generator)
from hims_billing.services.capabilities import StoreCapabilities
from hims_billing.services.charge_aggregate import (Breakdown, DischargeInputs,
                                                    compute_breakdown)
from hims_billing.services.charge_sources import ChargeSourceReader
from hims_billing.services.discharge_receipt import build_receipt
from hims_billing.services.room_occupancy import release_bed
from hims_billing.utils.money import money2
from hims_billing.utils.timezone import utcnow, as_naive_utc

logger = logging.getLogger(__name__)

Printer = Callable[[DischargeReceipt], Any]


@dataclass
class DischargeOutcome:
    discharge_number: str
    persisted: bool
    breakdown: Breakdown
    record: DischargeRecord
    receipt: DischargeReceipt
    warnings: List[str] = field(default_factory=list)


def _record_from_breakdown(
    discharge_number: str,
    admission: Admission,
    inputs: DischargeInputs,
    bd: Breakdown,
    user_id: Optional[int],
) -> DischargeRecord:
    c = bd.charges
    return DischargeRecord(
        discharge_number=discharge_number,
        admission_id=admission.id,
        patient_id=admission.patient_id,
        discharge_at=as_naive_utc(inputs.discharge_at),
        total_days=bd.stay_days,
        room_charges=c.room_charges,
        lab_charges=c.lab_charges,
        treatment_charges=c.treatment_charges,
        nicu_charges=c.nicu_charges,
        medical_charges=c.medical_charges,
        medicine_charges=c.medicine_charges,
        other_charges=c.other_charges,
        discount_type=bd.discount.discount_type.value
        if bd.discount.discount_type else None,
        discount_value=bd.discount.discount_value,
        discount_amount=bd.discount.discount_amount,
        subtotal=c.subtotal,
        total_charges=bd.discount.final_total,
        deposit=money2(admission.deposit),
        additional_payment=money2(inputs.additional_payment),
        total_paid=bd.settlement.total_paid,
        balance_due=bd.settlement.balance_due,
        refund_amount=bd.settlement.refund_amount,
        payment_status=bd.settlement.payment_status.value,
        payment_method=inputs.payment_method,
        final_diagnosis=inputs.final_diagnosis,
        treatment_summary=inputs.treatment_summary,
        medications=inputs.medications,
        follow_up_instructions=inputs.follow_up_instructions,
        discharge_notes=inputs.discharge_notes,
        items={
            "lab": [i.as_dict() for i in c.lab_items],
            "treatment": [i.as_dict() for i in c.treatment_items],
            "nicu": [i.as_dict() for i in c.nicu_items],
        },
        created_by=user_id,
        created_at=utcnow(),
    )


class DischargeFinalizer:
    """
    Settles an admission:
      validate -> stay/room charges -> charge sources -> discount ->
      settlement -> discharge number -> persist record (if the table
      exists) -> admission active->discharged -> release bed -> receipt.

    The admission status UPDATE is the commit point. It only matches an
    admission that is still active, so a concurrent finalize (or a
    cancellation) that got there first turns this call into a
    ConflictError. The caller owns the transaction and rolls back on error.

    The number strategy is fixed by the capability probe: when the series
    table exists but its row lock times out, finalize fails rather than
    falling back to a timestamp number.
    """

    def __init__(
        self,
        reader: ChargeSourceReader,
        capabilities: StoreCapabilities,
        *,
        id_generator: Optional[IdentifierGenerator] = None,
        printer: Optional[Printer] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.reader = reader
        self.capabilities = capabilities
        self.id_generator = id_generator or select_identifier_generator(
            capabilities)
        self.printer = printer
        self.clock = clock

    # ---------------------------------------------------------
    # Steps
    # ---------------------------------------------------------
    @staticmethod
    def _validate(admission, patient, doctor, room) -> None:
        missing = [
            name for name, obj in (("admission", admission),
                                   ("patient", patient), ("doctor", doctor),
                                   ("room", room)) if obj is None
        ]
        if missing:
            raise ValidationError("Missing admission details: " +
                                  ", ".join(missing))

        if patient.id != admission.patient_id:
            raise ValidationError("Patient does not belong to this admission")
        if admission.doctor_id is not None and doctor.id != admission.doctor_id:
            raise ValidationError("Doctor does not belong to this admission")
        if admission.room_id is not None and room.id != admission.room_id:
            raise ValidationError("Room does not belong to this admission")

        if admission.status != ADMISSION_ACTIVE:
            raise ConflictError(f"Admission is already {admission.status}")

    def _breakdown(self, admission: Admission, room: Room,
                   inputs: DischargeInputs) -> Breakdown:
        collected = self.reader.collect(
            admission.id,
            admission.patient_id,
            admission.admitted_at,
            as_of=self.clock(),
        )
        return compute_breakdown(
            inputs,
            admitted_at=admission.admitted_at,
            price_per_day=room.price_per_day,
            deposit=admission.deposit,
            collected=collected,
        )

    def _persist(self, db: Session, record: DischargeRecord,
                 warnings: List[str]) -> bool:
        if not self.capabilities.discharge_records:
            err = DegradedCapabilityError(
                "discharge records",
                "table not provisioned, record kept in memory only")
            logger.warning("Admission %s: %s", record.admission_id, err)
            warnings.append(str(err))
            return False

        db.add(record)
        try:
            db.flush()
        except IntegrityError as e:
            raise ConflictError(
                "Discharge already recorded for this admission") from e
        return True

    @staticmethod
    def _mark_discharged(db: Session, admission: Admission,
                         discharge_number: str, discharge_at: datetime) -> None:
        res = db.execute(
            update(Admission).where(
                Admission.id == admission.id,
                Admission.status == ADMISSION_ACTIVE,
            ).values(
                status=ADMISSION_DISCHARGED,
                discharge_number=discharge_number,
                discharged_at=discharge_at,
            ).execution_options(synchronize_session=False))
        if res.rowcount != 1:
            raise ConflictError("Admission is no longer active")
        db.refresh(admission)

    # ---------------------------------------------------------
    # Public
    # ---------------------------------------------------------
    def preview(self, admission: Optional[Admission],
                patient: Optional[Patient], doctor: Optional[Doctor],
                room: Optional[Room], inputs: DischargeInputs) -> Breakdown:
        """Running totals for the discharge screen. Never writes."""
        self._validate(admission, patient, doctor, room)
        return self._breakdown(admission, room, inputs)

    def finalize(
        self,
        db: Session,
        admission: Optional[Admission],
        patient: Optional[Patient],
        doctor: Optional[Doctor],
        room: Optional[Room],
        inputs: DischargeInputs,
        *,
        user_id: Optional[int] = None,
    ) -> DischargeOutcome:
        self._validate(admission, patient, doctor, room)

        bd = self._breakdown(admission, room, inputs)
        warnings = list(bd.warnings)

        discharge_number = self.id_generator.next_id(db, self.clock())

        record = _record_from_breakdown(discharge_number, admission, inputs,
                                        bd, user_id)
        persisted = self._persist(db, record, warnings)

        self._mark_discharged(db, admission, discharge_number,
                              record.discharge_at)

        if not release_bed(db, room.id):
            warnings.append(f"Room {room.room_number}: no occupied bed to release")

        receipt = build_receipt(record,
                                admission=admission,
                                patient=patient,
                                doctor=doctor,
                                room=room)

        if self.printer is not None:
            try:
                self.printer(receipt)
            except Exception as e:  # renderer is external; discharge stands
                logger.exception("Discharge %s: printing failed",
                                 discharge_number)
                warnings.append(f"Printing failed: {e}")

        logger.info(
            "Admission %s discharged as %s (total %s, status %s, persisted=%s)",
            admission.id, discharge_number, bd.final_total,
            bd.settlement.payment_status.value, persisted)

        return DischargeOutcome(
            discharge_number=discharge_number,
            persisted=persisted,
            breakdown=bd,
            record=record,
            receipt=receipt,
            warnings=warnings,
        )


def cancel_admission(db: Session, admission_id: int,
                     *, now: Optional[datetime] = None) -> Admission:
    """active -> cancelled; shares the conditional status write with finalize."""
    adm = db.get(Admission, admission_id)
    if not adm:
        raise NotFoundError("Admission not found")
    if adm.status != ADMISSION_ACTIVE:
        raise ConflictError(f"Admission is already {adm.status}")

    res = db.execute(
        update(Admission).where(
            Admission.id == admission_id,
            Admission.status == ADMISSION_ACTIVE,
        ).values(status=ADMISSION_CANCELLED,
                 cancelled_at=as_naive_utc(now) if now else utcnow()).
        execution_options(synchronize_session=False))
    if res.rowcount != 1:
        raise ConflictError("Admission is no longer active")

    if adm.room_id:
        release_bed(db, adm.room_id)

    db.refresh(adm)
    logger.info("Admission %s cancelled", admission_id)
    return adm
