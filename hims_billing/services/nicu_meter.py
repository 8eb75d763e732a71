# FILE: hims_billing/services/nicu_meter.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from hims_billing.core.config import settings
from hims_billing.core.errors import ConflictError, NotFoundError, ValidationError
from hims_billing.models.ipd import Admission, Room
from hims_billing.models.nicu import NicuObservation
from hims_billing.models.patient import Patient, Doctor
from hims_billing.utils.money import D, money2, ZERO
from hims_billing.utils.timezone import utcnow, as_naive_utc

logger = logging.getLogger(__name__)

_HOUR = timedelta(hours=1)
_MICRO = timedelta(microseconds=1)
# tolerated lead of a client-supplied end time over the server clock
_CLOCK_SKEW = timedelta(minutes=2)

# columns a caller may fill at start; everything else is billing-owned
VITAL_FIELDS = (
    "temperature",
    "heart_rate",
    "respiratory_rate",
    "oxygen_saturation",
    "weight_grams",
    "feeding_type",
    "feeding_amount_ml",
    "care_provided",
    "medications",
    "procedures",
    "condition",
    "notes",
)


@dataclass(frozen=True)
class NicuCharge:
    hours: int
    charge: Decimal
    is_estimate: bool = False


def billable_hours(start: datetime, end: datetime) -> int:
    """
    Whole hours between start and end, any fraction rounded up,
    never less than 1.
    """
    # integer ceil on microseconds, no float drift at hour boundaries
    micros = (end - start) // _MICRO
    per_hour = _HOUR // _MICRO
    hours = -(-micros // per_hour)
    return max(1, hours)


def elapsed_charge(obs: Any, as_of: Optional[datetime] = None) -> NicuCharge:
    """
    Same formula for running and closed sessions.

    Running: as_of defaults to now and the result is an estimate.
    Closed:  as_of defaults to end_time (the persisted final value).
    """
    if as_of is None:
        as_of = obs.end_time or utcnow()
    as_of = as_naive_utc(as_of)

    hours = billable_hours(obs.start_time, as_of)
    charge = money2(D(obs.hourly_rate) * hours)
    return NicuCharge(hours=hours,
                      charge=charge,
                      is_estimate=obs.end_time is None)


def current_charge(obs: NicuObservation,
                   as_of: Optional[datetime] = None) -> NicuCharge:
    """Persisted values for closed sessions, live estimate for running ones."""
    if obs.end_time is not None and obs.total_charge is not None:
        return NicuCharge(hours=int(obs.hours_charged or 1),
                          charge=money2(obs.total_charge))
    return elapsed_charge(obs, as_of)


def total_for(observations: Iterable[NicuObservation],
              as_of: Optional[datetime] = None) -> Decimal:
    total = ZERO
    for obs in observations:
        total += current_charge(obs, as_of).charge
    return money2(total)


def resolve_nicu_hourly_rate(db: Session) -> Decimal:
    room = (db.query(Room).filter(func.upper(Room.type) == "NICU").filter(
        Room.price_per_hour.isnot(None)).order_by(Room.id.asc()).first())
    if room and D(room.price_per_hour) > 0:
        return money2(room.price_per_hour)
    return money2(settings.NICU_DEFAULT_HOURLY_RATE)


def start_observation(
    db: Session,
    baby_patient_id: int,
    *,
    admission_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
    hourly_rate=None,
    vitals: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> NicuObservation:
    baby = db.get(Patient, baby_patient_id)
    if not baby:
        raise NotFoundError("Baby patient not found")
    if admission_id is not None and not db.get(Admission, admission_id):
        raise NotFoundError("Admission not found")
    if doctor_id is not None and not db.get(Doctor, doctor_id):
        raise NotFoundError("Doctor not found")

    rate = (money2(hourly_rate)
            if hourly_rate is not None else resolve_nicu_hourly_rate(db))
    if rate <= 0:
        raise ValidationError("Hourly rate must be greater than zero")

    data = {k: v for k, v in (vitals or {}).items() if k in VITAL_FIELDS}

    obs = NicuObservation(
        baby_patient_id=baby.id,
        admission_id=admission_id,
        doctor_id=doctor_id,
        start_time=as_naive_utc(now) if now else utcnow(),
        hourly_rate=rate,
        payment_status="pending",
        **data,
    )
    db.add(obs)
    db.flush()

    logger.info("NICU observation %s started for patient %s at %s/hr",
                obs.id, baby.id, rate)
    return obs


def end_observation(
    db: Session,
    observation_id: int,
    *,
    as_of: Optional[datetime] = None,
) -> NicuCharge:
    """
    Close a running session exactly once.

    The write is conditional on end_time still being NULL, so when two
    requests race only one of them closes the session; the other gets
    ConflictError and nothing is written.
    """
    obs = db.get(NicuObservation, observation_id)
    if not obs:
        raise NotFoundError("NICU observation not found")
    if obs.end_time is not None:
        raise ConflictError("NICU observation already ended")

    end_ts = as_naive_utc(as_of) if as_of else utcnow()
    if end_ts < obs.start_time:
        raise ValidationError("End time cannot be before start time")
    if end_ts > utcnow() + _CLOCK_SKEW:
        raise ValidationError("End time cannot be in the future")

    result = elapsed_charge(obs, end_ts)

    res = db.execute(
        update(NicuObservation).where(
            NicuObservation.id == observation_id,
            NicuObservation.end_time.is_(None),
        ).values(
            end_time=end_ts,
            hours_charged=result.hours,
            total_charge=result.charge,
        ).execution_options(synchronize_session=False))
    if res.rowcount != 1:
        raise ConflictError("NICU observation already ended")

    db.refresh(obs)

    logger.info("NICU observation %s ended: %s h, charge %s", obs.id,
                result.hours, result.charge)
    return NicuCharge(hours=result.hours, charge=result.charge)
