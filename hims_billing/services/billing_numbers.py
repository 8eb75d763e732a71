# FILE: hims_billing/services/billing_numbers.py
from __future__ import annotations

import secrets
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hims_billing.core.config import settings
from hims_billing.models.billing import BillingNumberSeries, NumberResetPeriod
from hims_billing.services.capabilities import StoreCapabilities

DOC_DISCHARGE = "DISCHARGE"


def _period_key(now: datetime, reset: NumberResetPeriod) -> str | None:
    if reset == NumberResetPeriod.NONE:
        return None
    if reset == NumberResetPeriod.YEAR:
        return now.strftime("%Y")
    if reset == NumberResetPeriod.MONTH:
        return now.strftime("%Y-%m")
    return None


class IdentifierGenerator(Protocol):
    name: str

    def next_id(self, db: Session, now: datetime) -> str:
        ...


class SequenceIdentifierGenerator:
    """
    Gap-free numbers from billing_number_series, e.g. DIS-2024-000001.
    The series row is locked FOR UPDATE for the rest of the transaction.
    """
    name = "sequence"

    def __init__(
        self,
        doc_type: str = DOC_DISCHARGE,
        prefix: Optional[str] = None,
        reset_period: NumberResetPeriod = NumberResetPeriod.YEAR,
        padding: Optional[int] = None,
    ):
        self.doc_type = doc_type
        self.prefix = settings.DISCHARGE_NUMBER_PREFIX if prefix is None else prefix
        self.reset_period = reset_period
        self.padding = padding or settings.DISCHARGE_NUMBER_PADDING

    def _locked_row(self, db: Session) -> Optional[BillingNumberSeries]:
        return (db.query(BillingNumberSeries).filter(
            BillingNumberSeries.doc_type == self.doc_type).filter(
                BillingNumberSeries.prefix == self.prefix).filter(
                    BillingNumberSeries.reset_period ==
                    self.reset_period).with_for_update().first())

    def next_id(self, db: Session, now: datetime) -> str:
        key = _period_key(now, self.reset_period)

        row = self._locked_row(db)
        if not row:
            row = BillingNumberSeries(
                doc_type=self.doc_type,
                prefix=self.prefix,
                reset_period=self.reset_period,
                padding=self.padding,
                next_number=1,
                last_period_key=key,
                is_active=True,
            )
            # two first-ever discharges at once: one insert loses, re-read
            try:
                with db.begin_nested():
                    db.add(row)
            except IntegrityError:
                row = self._locked_row(db)
                if not row:
                    raise

        # reset if period changed
        if self.reset_period != NumberResetPeriod.NONE and row.last_period_key != key:
            row.last_period_key = key
            row.next_number = 1

        n = int(row.next_number or 1)
        row.next_number = n + 1
        db.flush()

        pad = int(row.padding or self.padding)
        if key:
            return f"{row.prefix}{key}-{str(n).zfill(pad)}"
        return f"{row.prefix}{str(n).zfill(pad)}"


class TimestampIdentifierGenerator:
    """Used when the number-series table is not provisioned: DIS-20240103101500-4821."""
    name = "timestamp"

    def __init__(self, prefix: Optional[str] = None):
        self.prefix = settings.DISCHARGE_NUMBER_PREFIX if prefix is None else prefix

    def next_id(self, db: Session, now: datetime) -> str:
        return f"{self.prefix}{now:%Y%m%d%H%M%S}-{secrets.randbelow(10000):04d}"


def select_identifier_generator(caps: StoreCapabilities) -> IdentifierGenerator:
    if caps.number_series:
        return SequenceIdentifierGenerator()
    return TimestampIdentifierGenerator()
