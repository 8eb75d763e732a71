# FILE: hims_billing/models/orders.py
from __future__ import annotations

from datetime import datetime
from sqlalchemy import (Column, Integer, String, DateTime, Text, ForeignKey,
                        Numeric, Index)

from hims_billing.db.base import Base


class LabOrder(Base):
    __tablename__ = "lab_orders"
    __table_args__ = (Index("ix_lab_orders_patient_date", "patient_id",
                            "order_date"), )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=True)
    tests = Column(Text, default="")  # comma separated test names
    total_amount = Column(Numeric(12, 2), default=0)
    status = Column(String(20), default="pending")  # pending/in-progress/completed
    order_date = Column(DateTime, default=datetime.utcnow, nullable=False)


class Treatment(Base):
    __tablename__ = "treatments"
    __table_args__ = (Index("ix_treatments_patient_date", "patient_id",
                            "treated_at"), )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=True)
    treatment_type = Column(String(60), default="")  # Dressing, Operation, ...
    treatment_name = Column(String(120), nullable=False)
    price = Column(Numeric(12, 2), default=0)
    payment_status = Column(String(16), default="pending")
    treated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    notes = Column(Text, default="")
