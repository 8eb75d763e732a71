# FILE: hims_billing/models/ipd.py
from __future__ import annotations

from datetime import datetime
from sqlalchemy import (Column, Integer, String, DateTime, Text, ForeignKey,
                        Numeric, Index, CheckConstraint)
from sqlalchemy.orm import relationship

from hims_billing.db.base import Base

ADMISSION_ACTIVE = "active"
ADMISSION_DISCHARGED = "discharged"
ADMISSION_CANCELLED = "cancelled"


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (
        CheckConstraint("occupied_beds >= 0", name="ck_rooms_occupied_nonneg"),
        Index("ix_rooms_type", "type"),
    )

    id = Column(Integer, primary_key=True)
    room_number = Column(String(30), unique=True, nullable=False)
    type = Column(String(30), default="General")  # General/Private/ICU/NICU/Emergency
    bed_count = Column(Integer, nullable=False, default=1)
    # mutated only through services.room_occupancy
    occupied_beds = Column(Integer, nullable=False, default=0)
    price_per_day = Column(Numeric(12, 2), nullable=False, default=0)
    # NICU rooms bill hourly
    price_per_hour = Column(Numeric(12, 2), nullable=True)
    department = Column(String(80), default="")


class Admission(Base):
    __tablename__ = "ipd_admissions"
    __table_args__ = (Index("ix_ipd_admissions_status", "status"), )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer,
                        ForeignKey("patients.id"),
                        nullable=False,
                        index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    bed_number = Column(Integer, nullable=True)

    admission_type = Column(String(20), default="Direct")  # OPD/Direct/Emergency
    admitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    deposit = Column(Numeric(12, 2), default=0)

    status = Column(String(20), default=ADMISSION_ACTIVE,
                    nullable=False)  # active/discharged/cancelled
    discharge_number = Column(String(40), nullable=True)
    discharged_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    notes = Column(Text, default="")

    patient = relationship("Patient")
    doctor = relationship("Doctor")
    room = relationship("Room")
