# FILE: hims_billing/utils/timezone.py
from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    Returns a *naive* datetime representing UTC time.
    All DateTime columns are naive UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
