# hims_billing/db/init_db.py
from __future__ import annotations

import argparse
import logging
from decimal import Decimal

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hims_billing.db.session import engine
from hims_billing.db.base import Base

# Import all models so metadata is complete
from hims_billing.models import (  # noqa: F401
    Patient, Doctor, Room, Admission, LabOrder, Treatment, NicuObservation,
    BillingNumberSeries, DischargeRecord)
from hims_billing.models.billing import NumberResetPeriod
from hims_billing.services.billing_numbers import DOC_DISCHARGE
from hims_billing.core.config import settings

logger = logging.getLogger(__name__)

OPTIONAL_TABLES = {
    "discharge-records": DischargeRecord.__table__,
    "number-series": BillingNumberSeries.__table__,
}


def seed_masters(db: Session) -> None:
    """
    Seed ONLY missing rows; safe to run multiple times.
    """
    if inspect(db.get_bind()).has_table(BillingNumberSeries.__tablename__):
        exists = (db.query(BillingNumberSeries).filter(
            BillingNumberSeries.doc_type == DOC_DISCHARGE).first())
        if not exists:
            db.add(
                BillingNumberSeries(
                    doc_type=DOC_DISCHARGE,
                    prefix=settings.DISCHARGE_NUMBER_PREFIX,
                    reset_period=NumberResetPeriod.YEAR,
                    padding=settings.DISCHARGE_NUMBER_PADDING,
                    next_number=1,
                ))

    nicu = db.query(Room).filter(Room.type == "NICU").first()
    if not nicu:
        db.add(
            Room(
                room_number="NICU-1",
                type="NICU",
                bed_count=4,
                occupied_beds=0,
                price_per_day=Decimal("0"),
                price_per_hour=settings.NICU_DEFAULT_HOURLY_RATE,
                department="Paediatrics",
            ))


def run(fresh: bool = False, skip: tuple[str, ...] = ()) -> None:
    skipped = {OPTIONAL_TABLES[s] for s in skip}
    tables = [t for t in Base.metadata.sorted_tables if t not in skipped]

    if fresh:
        logger.warning("Dropping ALL tables (dev only) ...")
        Base.metadata.drop_all(bind=engine)

    logger.info("Creating missing tables: %s", ", ".join(t.name for t in tables))
    Base.metadata.create_all(bind=engine, tables=tables)

    try:
        with Session(engine) as db:
            seed_masters(db)
            db.commit()
            logger.info("Masters seeded (missing rows inserted).")
    except SQLAlchemyError:
        logger.exception("Seeding failed")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    parser = argparse.ArgumentParser(
        description="Initialize DB (create tables, seed masters).")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Drop & recreate all tables (DEV ONLY).",
    )
    parser.add_argument(
        "--skip",
        action="append",
        default=[],
        choices=sorted(OPTIONAL_TABLES),
        help="Leave an optional table out (simulates an unmigrated schema).",
    )
    args = parser.parse_args()
    run(fresh=args.fresh, skip=tuple(args.skip))
