# FILE: hims_billing/services/capabilities.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from hims_billing.models.billing import BillingNumberSeries, DischargeRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreCapabilities:
    """What the connected schema supports. Probed once per engine."""
    discharge_records: bool
    number_series: bool


_cache: Dict[Engine, StoreCapabilities] = {}
_lock = threading.Lock()


def probe_capabilities(engine: Engine) -> StoreCapabilities:
    with _lock:
        caps = _cache.get(engine)
        if caps is not None:
            return caps

        insp = inspect(engine)
        caps = StoreCapabilities(
            discharge_records=insp.has_table(DischargeRecord.__tablename__),
            number_series=insp.has_table(BillingNumberSeries.__tablename__),
        )
        if not caps.discharge_records:
            logger.warning("Table %s missing: discharge records will not "
                           "be persisted", DischargeRecord.__tablename__)
        if not caps.number_series:
            logger.warning("Table %s missing: discharge numbers fall back "
                           "to timestamps", BillingNumberSeries.__tablename__)
        _cache[engine] = caps
        return caps


def forget_capabilities(engine: Engine | None = None) -> None:
    """Drop cached probe results (after a migration, or in tests)."""
    with _lock:
        if engine is None:
            _cache.clear()
        else:
            _cache.pop(engine, None)
