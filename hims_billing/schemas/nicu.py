from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NicuStartIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    baby_patient_id: int
    admission_id: Optional[int] = None
    doctor_id: Optional[int] = None
    # when omitted: NICU room hourly rate, else the configured default
    hourly_rate: Optional[Decimal] = Field(default=None, gt=0)

    temperature: Optional[float] = Field(default=None, ge=25, le=45)
    heart_rate: Optional[int] = Field(default=None, ge=0, le=300)
    respiratory_rate: Optional[int] = Field(default=None, ge=0, le=150)
    oxygen_saturation: Optional[int] = Field(default=None, ge=0, le=100)
    weight_grams: Optional[int] = Field(default=None, ge=0, le=10000)
    feeding_type: Optional[str] = None
    feeding_amount_ml: Optional[int] = Field(default=None, ge=0)
    care_provided: Optional[str] = None
    medications: Optional[str] = None
    procedures: Optional[str] = None
    condition: Optional[str] = "Stable"
    notes: Optional[str] = None


class NicuEndIn(BaseModel):
    end_time: Optional[datetime] = None


class NicuChargeOut(BaseModel):
    observation_id: int
    hours: int
    charge: Decimal
    is_estimate: bool


class NicuObservationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    baby_patient_id: int
    admission_id: Optional[int] = None
    doctor_id: Optional[int] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    hourly_rate: Decimal
    hours_charged: Optional[int] = None
    total_charge: Optional[Decimal] = None
    payment_status: Optional[str] = None

    temperature: Optional[float] = None
    heart_rate: Optional[int] = None
    respiratory_rate: Optional[int] = None
    oxygen_saturation: Optional[int] = None
    weight_grams: Optional[int] = None
    feeding_type: Optional[str] = None
    feeding_amount_ml: Optional[int] = None
    care_provided: Optional[str] = None
    medications: Optional[str] = None
    procedures: Optional[str] = None
    condition: Optional[str] = None
    notes: Optional[str] = None

    # running sessions: live estimate, not persisted
    current_hours: Optional[int] = None
    current_charge: Optional[Decimal] = None


class NicuObservationListOut(BaseModel):
    baby_patient_id: int
    observations: List[NicuObservationOut]
    total_charges: Decimal
