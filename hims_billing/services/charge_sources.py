# FILE: hims_billing/services/charge_sources.py
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

from hims_billing.core.config import settings
from hims_billing.core.errors import SourceLookupError
from hims_billing.models.nicu import NicuObservation
from hims_billing.models.orders import LabOrder, Treatment
from hims_billing.models.patient import Patient
from hims_billing.services.nicu_meter import current_charge
from hims_billing.utils.money import money2, ZERO
from hims_billing.utils.timezone import as_naive_utc

logger = logging.getLogger(__name__)

SOURCE_LAB = "lab"
SOURCE_TREATMENT = "treatment"
SOURCE_NICU_ADMISSION = "nicu_admission"
SOURCE_NICU_BABIES = "nicu_babies"
SOURCE_NICU_OWN = "nicu_own"

# merge order for NICU; first occurrence of an observation wins
NICU_SOURCES = (SOURCE_NICU_ADMISSION, SOURCE_NICU_BABIES, SOURCE_NICU_OWN)


@dataclass(frozen=True)
class ChargeLineItem:
    source: str  # lab / treatment / nicu / medical / medicine / other
    description: str
    amount: Decimal
    occurred_at: Optional[datetime] = None
    ref_id: Optional[int] = None
    baby_name: Optional[str] = None
    is_estimate: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "description": self.description,
            "amount": str(self.amount),
            "occurred_at":
            self.occurred_at.isoformat() if self.occurred_at else None,
            "ref_id": self.ref_id,
            "baby_name": self.baby_name,
            "is_estimate": self.is_estimate,
        }


@dataclass
class SourceResult:
    """Outcome of one lookup: its items, or the error that replaced them."""
    source: str
    items: List[ChargeLineItem] = field(default_factory=list)
    error: Optional[SourceLookupError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def total(self) -> Decimal:
        if not self.ok:
            return ZERO
        return money2(sum((i.amount for i in self.items), ZERO))


def combine_sources(
        results: List[SourceResult]
) -> Tuple[List[ChargeLineItem], Decimal, List[str]]:
    """
    Failed sources count as zero; their errors come back as warnings.
    Line items are de-duplicated on (source, ref_id) in the given order.
    """
    items: List[ChargeLineItem] = []
    warnings: List[str] = []
    seen = set()

    for r in results:
        if not r.ok:
            warnings.append(str(r.error))
            continue
        for it in r.items:
            if it.ref_id is not None:
                key = (it.source, it.ref_id)
                if key in seen:
                    continue
                seen.add(key)
            items.append(it)

    total = money2(sum((i.amount for i in items), ZERO))
    return items, total, warnings


@dataclass
class CollectedCharges:
    lab_total: Decimal = ZERO
    lab_items: List[ChargeLineItem] = field(default_factory=list)
    treatment_total: Decimal = ZERO
    treatment_items: List[ChargeLineItem] = field(default_factory=list)
    nicu_total: Decimal = ZERO
    nicu_items: List[ChargeLineItem] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


# -------------------------
# Lookups (one session each)
# -------------------------


def lab_charge_items(db: Session, patient_id: int,
                     since: datetime) -> List[ChargeLineItem]:
    rows = (db.query(LabOrder).filter(LabOrder.patient_id == patient_id).filter(
        LabOrder.order_date >= since).order_by(LabOrder.order_date.asc()).all())
    return [
        ChargeLineItem(
            source="lab",
            description=f"Lab: {r.tests}" if r.tests else f"Lab order #{r.id}",
            amount=money2(r.total_amount),
            occurred_at=r.order_date,
            ref_id=r.id,
        ) for r in rows
    ]


def treatment_charge_items(db: Session, patient_id: int,
                           since: datetime) -> List[ChargeLineItem]:
    rows = (db.query(Treatment).filter(
        Treatment.patient_id == patient_id).filter(
            Treatment.treated_at >= since).order_by(
                Treatment.treated_at.asc()).all())
    out = []
    for r in rows:
        desc = r.treatment_name
        if r.treatment_type:
            desc = f"{r.treatment_type}: {r.treatment_name}"
        out.append(
            ChargeLineItem(
                source="treatment",
                description=desc,
                amount=money2(r.price),
                occurred_at=r.treated_at,
                ref_id=r.id,
            ))
    return out


def _nicu_item(obs: NicuObservation, admitting_patient_id: int,
               as_of: Optional[datetime]) -> ChargeLineItem:
    charge = current_charge(obs, as_of)
    baby_name = None
    if obs.baby_patient_id != admitting_patient_id and obs.baby is not None:
        baby_name = obs.baby.name

    unit = "hr" if charge.hours == 1 else "hrs"
    desc = (f"NICU {obs.start_time:%d-%m-%Y %H:%M} "
            f"({charge.hours} {unit} @ {money2(obs.hourly_rate)}/hr)")
    if charge.is_estimate:
        desc += " - running"
    if baby_name:
        desc = f"{baby_name}: {desc}"

    return ChargeLineItem(
        source="nicu",
        description=desc,
        amount=charge.charge,
        occurred_at=obs.start_time,
        ref_id=obs.id,
        baby_name=baby_name,
        is_estimate=charge.is_estimate,
    )


def nicu_items_for_admission(db: Session, admission_id: int, patient_id: int,
                             as_of: Optional[datetime]) -> List[ChargeLineItem]:
    rows = (db.query(NicuObservation).filter(
        NicuObservation.admission_id == admission_id).order_by(
            NicuObservation.start_time.asc()).all())
    return [_nicu_item(o, patient_id, as_of) for o in rows]


def nicu_items_for_babies(db: Session, patient_id: int, since: datetime,
                          as_of: Optional[datetime]) -> List[ChargeLineItem]:
    """Babies of the admitting patient (mother, or a newborn with twins)."""
    patient = db.get(Patient, patient_id)
    if not patient or not (patient.is_female or patient.is_newborn):
        return []

    baby_ids = [
        pid for (pid, ) in db.query(Patient.id).filter(
            Patient.mother_patient_id == patient_id).all()
    ]
    if not baby_ids:
        return []

    rows = (db.query(NicuObservation).filter(
        NicuObservation.baby_patient_id.in_(baby_ids)).filter(
            NicuObservation.start_time >= since).order_by(
                NicuObservation.start_time.asc()).all())
    return [_nicu_item(o, patient_id, as_of) for o in rows]


def nicu_items_for_newborn(db: Session, patient_id: int, since: datetime,
                           as_of: Optional[datetime]) -> List[ChargeLineItem]:
    patient = db.get(Patient, patient_id)
    if not patient or not patient.is_newborn:
        return []

    rows = (db.query(NicuObservation).filter(
        NicuObservation.baby_patient_id == patient_id).filter(
            NicuObservation.start_time >= since).order_by(
                NicuObservation.start_time.asc()).all())
    return [_nicu_item(o, patient_id, as_of) for o in rows]


# -------------------------
# Reader
# -------------------------


class ChargeSourceReader:
    """
    Reads lab, treatment and NICU charges for one admission.

    Every lookup runs in its own worker with its own session; the lookups
    are joined against one deadline. A lookup that raises or misses the
    deadline contributes nothing and is reported in `warnings`.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        timeout: Optional[float] = None,
        max_workers: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.timeout = (settings.CHARGE_SOURCE_TIMEOUT_SECONDS
                        if timeout is None else timeout)
        self.max_workers = max_workers or settings.CHARGE_SOURCE_WORKERS

    def _run(self, fn: Callable[..., List[ChargeLineItem]],
             *args) -> List[ChargeLineItem]:
        with self.session_factory() as db:
            return fn(db, *args)

    def _failed(self, source: str, cause) -> SourceResult:
        err = SourceLookupError(source, cause)
        logger.warning("Charge source %s contributes zero: %s", source, cause)
        return SourceResult(source=source, error=err)

    def run_lookups(
        self, jobs: List[Tuple[str, Callable[..., List[ChargeLineItem]],
                               tuple]]
    ) -> Dict[str, SourceResult]:
        pool = ThreadPoolExecutor(max_workers=self.max_workers,
                                  thread_name_prefix="charge-src")
        results: Dict[str, SourceResult] = {}
        try:
            futures = {
                name: pool.submit(self._run, fn, *args)
                for name, fn, args in jobs
            }
            deadline = time.monotonic() + self.timeout
            for name, fut in futures.items():
                remaining = max(0.0, deadline - time.monotonic())
                try:
                    results[name] = SourceResult(source=name,
                                                 items=fut.result(remaining))
                except FuturesTimeout:
                    fut.cancel()
                    results[name] = self._failed(
                        name, f"timed out after {self.timeout}s")
                except Exception as e:  # one source must not sink the rest
                    results[name] = self._failed(name, e)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        return results

    def collect(
        self,
        admission_id: int,
        patient_id: int,
        admission_start: datetime,
        *,
        as_of: Optional[datetime] = None,
    ) -> CollectedCharges:
        since = as_naive_utc(admission_start)

        results = self.run_lookups([
            (SOURCE_LAB, lab_charge_items, (patient_id, since)),
            (SOURCE_TREATMENT, treatment_charge_items, (patient_id, since)),
            (SOURCE_NICU_ADMISSION, nicu_items_for_admission,
             (admission_id, patient_id, as_of)),
            (SOURCE_NICU_BABIES, nicu_items_for_babies,
             (patient_id, since, as_of)),
            (SOURCE_NICU_OWN, nicu_items_for_newborn,
             (patient_id, since, as_of)),
        ])

        lab_items, lab_total, lab_warn = combine_sources(
            [results[SOURCE_LAB]])
        trt_items, trt_total, trt_warn = combine_sources(
            [results[SOURCE_TREATMENT]])
        nicu_items, nicu_total, nicu_warn = combine_sources(
            [results[s] for s in NICU_SOURCES])

        return CollectedCharges(
            lab_total=lab_total,
            lab_items=lab_items,
            treatment_total=trt_total,
            treatment_items=trt_items,
            nicu_total=nicu_total,
            nicu_items=nicu_items,
            warnings=lab_warn + trt_warn + nicu_warn,
        )
