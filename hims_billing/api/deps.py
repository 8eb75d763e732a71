# hims_billing/api/deps.py
from __future__ import annotations

from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session, sessionmaker

from hims_billing.db.session import SessionLocal
from hims_billing.services.capabilities import probe_capabilities
from hims_billing.services.charge_sources import ChargeSourceReader
from hims_billing.services.discharge_finalizer import DischargeFinalizer


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_db(session_factory: sessionmaker = Depends(get_session_factory)
           ) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def get_finalizer(session_factory: sessionmaker = Depends(
    get_session_factory)) -> DischargeFinalizer:
    caps = probe_capabilities(session_factory.kw["bind"])
    return DischargeFinalizer(ChargeSourceReader(session_factory), caps)
