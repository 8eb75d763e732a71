from decimal import Decimal

from hims_billing.db.init_db import seed_masters
from hims_billing.models import BillingNumberSeries, Room
from hims_billing.services.nicu_meter import resolve_nicu_hourly_rate


def test_seed_is_idempotent(db):
    seed_masters(db)
    db.commit()
    seed_masters(db)
    db.commit()

    series = db.query(BillingNumberSeries).all()
    assert [(s.doc_type, s.prefix) for s in series] == [("DISCHARGE", "DIS-")]
    assert db.query(Room).filter(Room.type == "NICU").count() == 1
    assert resolve_nicu_hourly_rate(db) == Decimal("500.00")


def test_seed_without_series_table(bare_db):
    seed_masters(bare_db)
    bare_db.commit()
    assert bare_db.query(Room).filter(Room.type == "NICU").count() == 1
