# FILE: hims_billing/models/nicu.py
from __future__ import annotations

from datetime import datetime
from sqlalchemy import (Column, Integer, String, DateTime, Text, ForeignKey,
                        Numeric, Float, Index)
from sqlalchemy.orm import relationship

from hims_billing.db.base import Base


class NicuObservation(Base):
    """
    One hourly-metered NICU session for a baby patient.
    end_time NULL => session still running.
    """
    __tablename__ = "nicu_observations"
    __table_args__ = (
        Index("ix_nicu_obs_baby_start", "baby_patient_id", "start_time"),
        Index("ix_nicu_obs_admission", "admission_id"),
    )

    id = Column(Integer, primary_key=True)
    baby_patient_id = Column(Integer,
                             ForeignKey("patients.id"),
                             nullable=False)
    admission_id = Column(Integer,
                          ForeignKey("ipd_admissions.id"),
                          nullable=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=True)

    start_time = Column(DateTime, nullable=False, default=datetime.utcnow)
    end_time = Column(DateTime, nullable=True)

    # snapshotted at start; later rate changes never touch running sessions
    hourly_rate = Column(Numeric(12, 2), nullable=False)
    hours_charged = Column(Integer, nullable=True)
    total_charge = Column(Numeric(12, 2), nullable=True)
    payment_status = Column(String(16), default="pending")

    # ---------------- Vitals / care (not used by billing)
    temperature = Column(Float, nullable=True)
    heart_rate = Column(Integer, nullable=True)
    respiratory_rate = Column(Integer, nullable=True)
    oxygen_saturation = Column(Integer, nullable=True)
    weight_grams = Column(Integer, nullable=True)
    feeding_type = Column(String(40), nullable=True)
    feeding_amount_ml = Column(Integer, nullable=True)
    care_provided = Column(Text, nullable=True)
    medications = Column(Text, nullable=True)
    procedures = Column(Text, nullable=True)
    condition = Column(String(40), nullable=True)
    notes = Column(Text, nullable=True)

    baby = relationship("Patient")

    @property
    def is_active(self) -> bool:
        return self.end_time is None
