# hims_billing/models/__init__.py
from .patient import Patient, Doctor
from .ipd import Room, Admission
from .orders import LabOrder, Treatment
from .nicu import NicuObservation
from .billing import BillingNumberSeries, DischargeRecord

__all__ = [
    "Patient",
    "Doctor",
    "Room",
    "Admission",
    "LabOrder",
    "Treatment",
    "NicuObservation",
    "BillingNumberSeries",
    "DischargeRecord",
]
