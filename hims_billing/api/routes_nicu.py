# FILE: hims_billing/api/routes_nicu.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from hims_billing.api.deps import get_db
from hims_billing.core.errors import NotFoundError
from hims_billing.models.nicu import NicuObservation
from hims_billing.models.patient import Patient
from hims_billing.schemas.nicu import (NicuChargeOut, NicuEndIn,
                                       NicuObservationListOut,
                                       NicuObservationOut, NicuStartIn)
from hims_billing.services.nicu_meter import (VITAL_FIELDS, current_charge,
                                              end_observation,
                                              start_observation, total_for)
from hims_billing.utils.timezone import utcnow

router = APIRouter(prefix="/nicu", tags=["NICU – Observations"])


def _get_observation_or_404(db: Session, observation_id: int) -> NicuObservation:
    obs = db.get(NicuObservation, observation_id)
    if not obs:
        raise NotFoundError("NICU observation not found")
    return obs


def _out(obs: NicuObservation, now) -> NicuObservationOut:
    out = NicuObservationOut.model_validate(obs, from_attributes=True)
    c = current_charge(obs, now)
    out.current_hours = c.hours
    out.current_charge = c.charge
    return out


@router.post("/observations",
             response_model=NicuObservationOut,
             status_code=status.HTTP_201_CREATED)
def start(payload: NicuStartIn, db: Session = Depends(get_db)):
    vitals = payload.model_dump(include=set(VITAL_FIELDS), exclude_none=True)
    try:
        obs = start_observation(
            db,
            payload.baby_patient_id,
            admission_id=payload.admission_id,
            doctor_id=payload.doctor_id,
            hourly_rate=payload.hourly_rate,
            vitals=vitals,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(obs)
    return _out(obs, utcnow())


@router.post("/observations/{observation_id}/end",
             response_model=NicuChargeOut)
def end(
        observation_id: int,
        payload: Optional[NicuEndIn] = None,
        db: Session = Depends(get_db),
):
    try:
        charge = end_observation(db,
                                 observation_id,
                                 as_of=payload.end_time if payload else None)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return NicuChargeOut(observation_id=observation_id,
                         hours=charge.hours,
                         charge=charge.charge,
                         is_estimate=False)


@router.get("/observations", response_model=NicuObservationListOut)
def list_for_baby(
        baby_patient_id: int = Query(...),
        db: Session = Depends(get_db),
):
    if not db.get(Patient, baby_patient_id):
        raise NotFoundError("Baby patient not found")

    rows = (db.query(NicuObservation).filter(
        NicuObservation.baby_patient_id == baby_patient_id).order_by(
            NicuObservation.start_time.desc()).all())

    # one instant for every running estimate in the list
    now = utcnow()
    return NicuObservationListOut(
        baby_patient_id=baby_patient_id,
        observations=[_out(o, now) for o in rows],
        total_charges=total_for(rows, now),
    )


@router.get("/observations/{observation_id}/charge",
            response_model=NicuChargeOut)
def charge(observation_id: int, db: Session = Depends(get_db)):
    obs = _get_observation_or_404(db, observation_id)
    c = current_charge(obs, utcnow())
    return NicuChargeOut(observation_id=obs.id,
                         hours=c.hours,
                         charge=c.charge,
                         is_estimate=c.is_estimate)
