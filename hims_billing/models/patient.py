# FILE: hims_billing/models/patient.py
from __future__ import annotations

from datetime import datetime
from sqlalchemy import (Column, Integer, String, DateTime, Boolean,
                        ForeignKey, Index)
from sqlalchemy.orm import relationship

from hims_billing.db.base import Base


class Patient(Base):
    """
    Registered patient. Newborns are patients too (is_newborn=True),
    linked to the mother through mother_patient_id.
    """
    __tablename__ = "patients"
    __table_args__ = (Index("ix_patients_mother", "mother_patient_id"), )

    id = Column(Integer, primary_key=True)
    mr_number = Column(String(30), unique=True, nullable=True)
    name = Column(String(120), nullable=False)
    gender = Column(String(16), nullable=True)  # Male / Female / Other
    age = Column(Integer, nullable=True)
    contact = Column(String(30), default="")

    is_newborn = Column(Boolean, default=False, nullable=False)
    mother_patient_id = Column(Integer,
                               ForeignKey("patients.id"),
                               nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    mother = relationship("Patient", remote_side=[id])

    @property
    def is_female(self) -> bool:
        return (self.gender or "").strip().lower() in {"female", "f"}


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    specialization = Column(String(120), default="")
    is_active = Column(Boolean, default=True)
