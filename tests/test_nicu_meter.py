from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import pytest

from hims_billing.core.errors import ConflictError, NotFoundError, ValidationError
from hims_billing.models import NicuObservation, Patient, Room
from hims_billing.services.nicu_meter import (billable_hours, current_charge,
                                              elapsed_charge, end_observation,
                                              resolve_nicu_hourly_rate,
                                              start_observation, total_for)
from hims_billing.utils.timezone import utcnow

T10 = datetime(2024, 1, 2, 10, 0)


def _baby(db, mother=None):
    baby = Patient(name="Baby of Lakshmi",
                   gender="Female",
                   age=0,
                   is_newborn=True,
                   mother_patient_id=mother.id if mother else None)
    db.add(baby)
    db.commit()
    return baby


@pytest.mark.parametrize("minutes,hours", [
    (0, 1),
    (1, 1),
    (45, 1),
    (60, 1),
    (61, 2),
    (75, 2),
    (24 * 60, 24),
])
def test_billable_hours_round_up(minutes, hours):
    assert billable_hours(T10, T10 + timedelta(minutes=minutes)) == hours


def test_billable_hours_one_microsecond_past_the_hour():
    end = T10 + timedelta(hours=3, microseconds=1)
    assert billable_hours(T10, end) == 4


def test_partial_hour_is_charged_as_full_hour():
    obs = SimpleNamespace(start_time=T10, end_time=None, hourly_rate=500)
    c = elapsed_charge(obs, T10 + timedelta(minutes=45))
    assert c.hours == 1
    assert c.charge == Decimal("500.00")
    assert c.is_estimate is True


def test_hour_and_a_quarter_is_two_hours():
    obs = SimpleNamespace(start_time=T10,
                          end_time=T10 + timedelta(minutes=75),
                          hourly_rate=Decimal("500"))
    c = elapsed_charge(obs)
    assert c.hours == 2
    assert c.charge == Decimal("1000.00")
    assert c.is_estimate is False


def test_default_rate_without_nicu_room(db):
    assert resolve_nicu_hourly_rate(db) == Decimal("500.00")


def test_rate_from_nicu_room(db):
    db.add(
        Room(room_number="NICU-1",
             type="NICU",
             bed_count=2,
             price_per_day=0,
             price_per_hour=Decimal("750")))
    db.commit()
    assert resolve_nicu_hourly_rate(db) == Decimal("750.00")


class TestLifecycle:

    def test_start_then_end(self, db):
        baby = _baby(db)
        obs = start_observation(db,
                                baby.id,
                                vitals={
                                    "temperature": 36.8,
                                    "heart_rate": 140,
                                    "hourly_rate": 1,  # not a vital
                                },
                                now=T10)
        db.commit()

        assert obs.end_time is None
        assert obs.hourly_rate == Decimal("500.00")
        assert obs.heart_rate == 140
        assert obs.payment_status == "pending"

        charge = end_observation(db,
                                 obs.id,
                                 as_of=T10 + timedelta(minutes=45))
        db.commit()

        assert charge.hours == 1
        assert charge.charge == Decimal("500.00")

        row = db.get(NicuObservation, obs.id)
        assert row.end_time == T10 + timedelta(minutes=45)
        assert row.hours_charged == 1
        assert Decimal(row.total_charge) == Decimal("500")

    def test_total_is_hours_times_rate(self, db):
        baby = _baby(db)
        obs = start_observation(db, baby.id, hourly_rate="350", now=T10)
        charge = end_observation(db,
                                 obs.id,
                                 as_of=T10 + timedelta(hours=5, minutes=1))
        db.commit()

        row = db.get(NicuObservation, obs.id)
        assert row.hours_charged == charge.hours == 6
        assert Decimal(row.total_charge) == Decimal("350") * 6

    def test_second_end_is_rejected_without_changes(self, db):
        baby = _baby(db)
        obs = start_observation(db, baby.id, now=T10)
        end_observation(db, obs.id, as_of=T10 + timedelta(minutes=75))
        db.commit()

        with pytest.raises(ConflictError):
            end_observation(db, obs.id, as_of=T10 + timedelta(hours=9))
        db.rollback()

        row = db.get(NicuObservation, obs.id)
        assert row.end_time == T10 + timedelta(minutes=75)
        assert row.hours_charged == 2
        assert Decimal(row.total_charge) == Decimal("1000")

    def test_end_before_start_rejected(self, db):
        baby = _baby(db)
        obs = start_observation(db, baby.id, now=T10)
        db.commit()
        with pytest.raises(ValidationError):
            end_observation(db, obs.id, as_of=T10 - timedelta(minutes=1))

    def test_losing_end_writes_nothing(self, db, session_factory):
        baby = _baby(db)
        obs = start_observation(db, baby.id, now=T10)
        db.commit()
        obs_id = obs.id

        # a copy of the row as it looked before anyone ended it
        db.refresh(obs)
        db.expunge(obs)
        db.rollback()

        with session_factory() as other:
            end_observation(other, obs_id, as_of=T10 + timedelta(minutes=75))
            other.commit()

        with mock.patch.object(db, "get", return_value=obs):
            with pytest.raises(ConflictError):
                end_observation(db, obs_id, as_of=T10 + timedelta(hours=6))
        db.rollback()

        row = db.get(NicuObservation, obs_id)
        assert row.end_time == T10 + timedelta(minutes=75)
        assert row.hours_charged == 2
        assert Decimal(row.total_charge) == Decimal("1000")

    def test_future_end_rejected(self, db):
        baby = _baby(db)
        started = utcnow() - timedelta(hours=1)
        obs = start_observation(db, baby.id, now=started)
        db.commit()

        with pytest.raises(ValidationError):
            end_observation(db, obs.id, as_of=utcnow() + timedelta(hours=1))
        db.rollback()

        assert db.get(NicuObservation, obs.id).end_time is None

    def test_unknown_observation(self, db):
        with pytest.raises(NotFoundError):
            end_observation(db, 9999)

    def test_unknown_baby(self, db):
        with pytest.raises(NotFoundError):
            start_observation(db, 9999)

    def test_zero_rate_rejected(self, db):
        baby = _baby(db)
        with pytest.raises(ValidationError):
            start_observation(db, baby.id, hourly_rate=0)


class TestCurrentCharge:

    def test_running_session_is_an_estimate(self, db):
        baby = _baby(db)
        obs = start_observation(db, baby.id, now=T10)
        db.commit()

        c = current_charge(obs, T10 + timedelta(hours=2, minutes=10))
        assert c.hours == 3
        assert c.charge == Decimal("1500.00")
        assert c.is_estimate is True

    def test_closed_session_uses_persisted_values(self, db):
        baby = _baby(db)
        obs = start_observation(db, baby.id, now=T10)
        end_observation(db, obs.id, as_of=T10 + timedelta(minutes=30))
        db.commit()

        c = current_charge(obs, T10 + timedelta(days=3))
        assert c.hours == 1
        assert c.charge == Decimal("500.00")
        assert c.is_estimate is False

    def test_total_for_mixes_closed_and_running(self, db):
        baby = _baby(db)
        closed = start_observation(db, baby.id, now=T10)
        end_observation(db, closed.id, as_of=T10 + timedelta(minutes=75))
        running = start_observation(db,
                                    baby.id,
                                    now=T10 + timedelta(hours=3))
        db.commit()

        as_of = T10 + timedelta(hours=3, minutes=20)
        assert total_for([closed, running], as_of) == Decimal("1500.00")
