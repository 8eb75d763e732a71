# hims_billing/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All tables (patients, rooms, admissions, orders, billing) inherit from this."""
    pass
