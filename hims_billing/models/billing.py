# FILE: hims_billing/models/billing.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Numeric, ForeignKey, Enum,
    Boolean, Index, UniqueConstraint, JSON
)

from hims_billing.db.base import Base

Money = Numeric(12, 2)


class NumberResetPeriod(str, enum.Enum):
    NONE = "NONE"
    YEAR = "YEAR"
    MONTH = "MONTH"


class PaymentStatus(str, enum.Enum):
    PAID = "paid"
    PARTIAL = "partial"
    PENDING = "pending"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class BillingNumberSeries(Base):
    __tablename__ = "billing_number_series"
    __table_args__ = (UniqueConstraint("doc_type",
                                       "prefix",
                                       "reset_period",
                                       name="uq_billing_number_series"), )

    id = Column(Integer, primary_key=True)
    doc_type = Column(String(30), nullable=False)  # DISCHARGE / RECEIPT ...
    prefix = Column(String(20), nullable=False, default="")
    reset_period = Column(Enum(NumberResetPeriod),
                          nullable=False,
                          default=NumberResetPeriod.YEAR)
    padding = Column(Integer, nullable=False, default=6)
    next_number = Column(Integer, nullable=False, default=1)
    last_period_key = Column(String(10), nullable=True)
    is_active = Column(Boolean, default=True)
    updated_at = Column(DateTime,
                        nullable=False,
                        default=datetime.utcnow,
                        onupdate=datetime.utcnow)


class DischargeRecord(Base):
    """
    Final itemised bill for one admission.
    Written once at discharge; reprints read this row, never recompute.
    """
    __tablename__ = "ipd_discharge_records"
    __table_args__ = (
        UniqueConstraint("admission_id", name="uq_discharge_admission"),
        UniqueConstraint("discharge_number", name="uq_discharge_number"),
        Index("ix_discharge_patient", "patient_id"),
    )

    id = Column(Integer, primary_key=True)
    discharge_number = Column(String(40), nullable=False)
    admission_id = Column(Integer,
                          ForeignKey("ipd_admissions.id"),
                          nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    discharge_at = Column(DateTime, nullable=False)
    total_days = Column(Integer, nullable=False)

    # ---------------- breakdown
    room_charges = Column(Money, default=0)
    lab_charges = Column(Money, default=0)
    treatment_charges = Column(Money, default=0)
    nicu_charges = Column(Money, default=0)
    medical_charges = Column(Money, default=0)
    medicine_charges = Column(Money, default=0)
    other_charges = Column(Money, default=0)

    discount_type = Column(String(16), nullable=True)  # percentage | fixed
    discount_value = Column(Money, default=0)
    discount_amount = Column(Money, default=0)

    subtotal = Column(Money, default=0)
    total_charges = Column(Money, default=0)  # subtotal - discount

    # ---------------- settlement
    deposit = Column(Money, default=0)
    additional_payment = Column(Money, default=0)
    total_paid = Column(Money, default=0)
    balance_due = Column(Money, default=0)
    refund_amount = Column(Money, default=0)
    payment_status = Column(String(16), nullable=False)  # paid/partial/pending
    payment_method = Column(String(30), nullable=True)

    # ---------------- clinical summary (free text)
    final_diagnosis = Column(Text, default="")
    treatment_summary = Column(Text, default="")
    medications = Column(Text, default="")
    follow_up_instructions = Column(Text, default="")
    discharge_notes = Column(Text, default="")

    # {"lab": [...], "treatment": [...], "nicu": [...]}
    items = Column(JSON, nullable=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
