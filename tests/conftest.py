import os

# settings are read at import time; keep the suite off any real database
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("NICU_DEFAULT_HOURLY_RATE", "500")

from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from hims_billing.db.base import Base
from hims_billing.db.session import get_or_create_engine, make_sessionmaker
from hims_billing.models import (Admission, BillingNumberSeries,
                                 DischargeRecord, Doctor, Patient, Room)
from hims_billing.services.capabilities import forget_capabilities

OPTIONAL = {DischargeRecord.__tablename__, BillingNumberSeries.__tablename__}


def _engine(path, *, full_schema=True):
    # file-backed so charge-source workers can open their own connections
    eng = get_or_create_engine(f"sqlite:///{path}")
    tables = [
        t for t in Base.metadata.sorted_tables
        if full_schema or t.name not in OPTIONAL
    ]
    Base.metadata.create_all(eng, tables=tables)
    forget_capabilities(eng)
    return eng


@pytest.fixture
def engine(tmp_path):
    eng = _engine(tmp_path / "billing.db")
    yield eng
    forget_capabilities(eng)
    eng.dispose()


@pytest.fixture
def bare_engine(tmp_path):
    """Schema without the discharge-record and number-series tables."""
    eng = _engine(tmp_path / "bare.db", full_schema=False)
    yield eng
    forget_capabilities(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
def bare_session_factory(bare_engine):
    return make_sessionmaker(bare_engine)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def bare_db(bare_session_factory):
    s = bare_session_factory()
    yield s
    s.close()


def seed_ward(db):
    """
    One active admission: 2024-01-01 10:00 in a 1000/day room,
    deposit 5000, one of four beds occupied.
    """
    doctor = Doctor(name="Dr. Meena Raghavan", specialization="Obstetrics")
    room = Room(room_number="G-101",
                type="General",
                bed_count=4,
                occupied_beds=1,
                price_per_day=Decimal("1000"))
    mother = Patient(mr_number="MR-0001",
                     name="Lakshmi Devi",
                     gender="Female",
                     age=29,
                     contact="9840012345")
    db.add_all([doctor, room, mother])
    db.flush()

    adm = Admission(patient_id=mother.id,
                    doctor_id=doctor.id,
                    room_id=room.id,
                    bed_number=1,
                    admitted_at=datetime(2024, 1, 1, 10, 0),
                    deposit=Decimal("5000"),
                    status="active")
    db.add(adm)
    db.commit()
    return SimpleNamespace(doctor=doctor,
                           room=room,
                           patient=mother,
                           admission=adm)


@pytest.fixture
def ward(db):
    return seed_ward(db)


@pytest.fixture
def bare_ward(bare_db):
    return seed_ward(bare_db)
