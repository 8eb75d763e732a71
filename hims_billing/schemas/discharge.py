from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DiscountTypeIn = Literal["percentage", "fixed"]


def _strip(v: Optional[str]) -> str:
    return (v or "").strip()


class DischargeIn(BaseModel):
    """What the discharge desk submits (preview and finalize)."""
    model_config = ConfigDict(extra="ignore")

    discharge_at: Optional[datetime] = None

    medical_charges: Decimal = Field(default=Decimal("0"), ge=0)
    medicine_charges: Decimal = Field(default=Decimal("0"), ge=0)
    other_charges: Decimal = Field(default=Decimal("0"), ge=0)

    discount_type: Optional[DiscountTypeIn] = None
    # sign is checked by the discount policy so the error reads the same
    # from the API and from direct service calls
    discount_value: Decimal = Decimal("0")

    additional_payment: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: Optional[str] = None

    final_diagnosis: str = ""
    treatment_summary: str = ""
    medications: str = ""
    follow_up_instructions: str = ""
    discharge_notes: str = ""

    @field_validator("final_diagnosis", "treatment_summary", "medications",
                     "follow_up_instructions", "discharge_notes",
                     mode="before")
    @classmethod
    def _clean_text(cls, v):
        return _strip(v)


class ReceiptItem(BaseModel):
    description: str
    amount: Decimal
    baby_name: Optional[str] = None
    is_estimate: bool = False


class BreakdownOut(BaseModel):
    admission_id: int
    discharge_at: datetime
    total_days: int

    room_charges: Decimal
    lab_charges: Decimal
    treatment_charges: Decimal
    nicu_charges: Decimal
    medical_charges: Decimal
    medicine_charges: Decimal
    other_charges: Decimal
    subtotal: Decimal

    discount_type: Optional[str] = None
    discount_value: Decimal
    discount_amount: Decimal
    total_charges: Decimal

    deposit: Decimal
    additional_payment: Decimal
    total_paid: Decimal
    balance_due: Decimal
    refund_amount: Decimal
    payment_status: str

    lab_items: List[ReceiptItem] = []
    treatment_items: List[ReceiptItem] = []
    nicu_items: List[ReceiptItem] = []

    warnings: List[str] = []


class DischargeReceipt(BaseModel):
    """
    Printable discharge bill. Handed to the document renderer as-is;
    `display` carries the currency-formatted amounts.
    """
    model_config = ConfigDict(from_attributes=True)

    discharge_number: str
    admission_id: int
    patient_name: str
    mr_number: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    contact: Optional[str] = None
    is_newborn: bool = False
    mother_name: Optional[str] = None

    admission_date: datetime
    discharge_date: datetime
    total_days: int
    room_number: Optional[str] = None
    room_type: Optional[str] = None
    doctor_name: Optional[str] = None

    room_charges: Decimal
    lab_charges: Decimal
    treatment_charges: Decimal
    nicu_charges: Decimal
    medical_charges: Decimal
    medicine_charges: Decimal
    other_charges: Decimal

    discount_type: Optional[str] = None
    discount_value: Decimal = Decimal("0")
    discount_amount: Decimal

    subtotal: Decimal
    total_charges: Decimal
    deposit_paid: Decimal
    additional_payment: Decimal
    total_paid: Decimal
    balance_due: Decimal
    refund_amount: Decimal

    payment_method: Optional[str] = None
    payment_status: str

    final_diagnosis: str = ""
    treatment_summary: str = ""
    medications: str = ""
    follow_up_instructions: str = ""
    discharge_notes: str = ""

    lab_items: List[ReceiptItem] = []
    treatment_items: List[ReceiptItem] = []
    nicu_items: List[ReceiptItem] = []

    display: Dict[str, str] = {}


class DischargeResultOut(BaseModel):
    message: str
    discharge_number: str
    persisted: bool
    warnings: List[str] = []
    receipt: DischargeReceipt
