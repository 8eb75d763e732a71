import re
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from hims_billing.api.deps import get_session_factory
from hims_billing.main import app
from hims_billing.models import Patient

DISCHARGE_BODY = {
    "discharge_at": "2024-01-03T10:00:00",
    "discount_type": "fixed",
    "discount_value": 500,
    "payment_method": "Cash",
    "final_diagnosis": "  Viral fever  ",
}


@pytest.fixture
def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admission_id(db, ward):
    adm_id = ward.admission.id
    # end the read so SQLite lets the app commit
    db.rollback()
    return adm_id


@pytest.fixture
def baby_id(db):
    p = Patient(name="Baby Kavin", gender="Male", is_newborn=True)
    db.add(p)
    db.commit()
    pid = p.id
    db.rollback()
    return pid


def _url(admission_id, tail=""):
    return f"/api/ipd/admissions/{admission_id}{tail}"


def test_health(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["version"] == "v1"


class TestDischarge:

    def test_preview(self, client, admission_id):
        r = client.post(_url(admission_id, "/discharge/preview"),
                        json=DISCHARGE_BODY)
        assert r.status_code == 200
        body = r.json()
        assert body["total_days"] == 2
        assert Decimal(body["room_charges"]) == Decimal("2000")
        assert Decimal(body["discount_amount"]) == Decimal("500")
        assert Decimal(body["total_charges"]) == Decimal("1500")
        assert Decimal(body["refund_amount"]) == Decimal("3500")
        assert body["payment_status"] == "paid"
        assert body["warnings"] == []

    def test_finalize_then_reprint(self, client, admission_id):
        r = client.get(_url(admission_id, "/discharge-record"))
        assert r.status_code == 404

        r = client.post(_url(admission_id, "/discharge"),
                        json=DISCHARGE_BODY)
        assert r.status_code == 200
        body = r.json()
        assert re.fullmatch(r"DIS-\d{4}-000001", body["discharge_number"])
        assert body["persisted"] is True
        receipt = body["receipt"]
        assert receipt["patient_name"] == "Lakshmi Devi"
        assert receipt["final_diagnosis"] == "Viral fever"
        assert receipt["display"]["total_charges"] == "Rs 1,500"

        r = client.get(_url(admission_id, "/discharge-record"))
        assert r.status_code == 200
        assert r.json()["discharge_number"] == body["discharge_number"]
        assert Decimal(r.json()["total_charges"]) == Decimal("1500")

    def test_second_finalize_conflicts(self, client, admission_id):
        assert client.post(_url(admission_id, "/discharge"),
                           json=DISCHARGE_BODY).status_code == 200
        r = client.post(_url(admission_id, "/discharge"),
                        json=DISCHARGE_BODY)
        assert r.status_code == 409
        assert r.json() == {
            "status": False,
            "data": None,
            "error": {
                "msg": "Admission is already discharged",
                "code": "conflict",
            },
        }

    def test_cancel_then_finalize_conflicts(self, client, admission_id):
        r = client.patch(_url(admission_id, "/cancel"))
        assert r.status_code == 200
        assert r.json()["status"] == "cancelled"

        r = client.post(_url(admission_id, "/discharge"),
                        json=DISCHARGE_BODY)
        assert r.status_code == 409

    def test_unknown_admission(self, client):
        r = client.post(_url(999, "/discharge/preview"), json=DISCHARGE_BODY)
        assert r.status_code == 404
        assert r.json()["error"]["msg"] == "Admission not found"
        assert r.json()["error"]["code"] == "not_found"

    def test_negative_discount_rejected(self, client, admission_id):
        body = dict(DISCHARGE_BODY, discount_value=-5)
        r = client.post(_url(admission_id, "/discharge/preview"),
                        json=body)
        assert r.status_code == 400
        assert r.json()["error"]["msg"] == "Discount value cannot be negative"

    def test_negative_charge_rejected(self, client, admission_id):
        body = dict(DISCHARGE_BODY, medical_charges=-1)
        r = client.post(_url(admission_id, "/discharge"), json=body)
        assert r.status_code == 422
        assert r.json()["error"]["msg"].startswith("medical_charges")


class TestNicu:

    def test_start_end_list(self, client, baby_id):
        r = client.post("/api/nicu/observations",
                        json={
                            "baby_patient_id": baby_id,
                            "temperature": 36.9,
                            "heart_rate": 138,
                        })
        assert r.status_code == 201
        obs = r.json()
        assert Decimal(obs["hourly_rate"]) == Decimal("500")
        assert obs["end_time"] is None
        assert obs["current_hours"] == 1

        # no body: the session closes at the server clock
        r = client.post(f"/api/nicu/observations/{obs['id']}/end")
        assert r.status_code == 200
        assert r.json()["hours"] == 1
        assert Decimal(r.json()["charge"]) == Decimal("500")

        r = client.post(f"/api/nicu/observations/{obs['id']}/end")
        assert r.status_code == 409

        r = client.get("/api/nicu/observations",
                       params={"baby_patient_id": baby_id})
        assert r.status_code == 200
        listed = r.json()
        assert len(listed["observations"]) == 1
        assert listed["observations"][0]["hours_charged"] == 1
        assert Decimal(listed["total_charges"]) == Decimal("500")

        r = client.get(f"/api/nicu/observations/{obs['id']}/charge")
        assert r.json()["is_estimate"] is False
        assert Decimal(r.json()["charge"]) == Decimal("500")

    def test_future_end_rejected(self, client, baby_id):
        r = client.post("/api/nicu/observations",
                        json={"baby_patient_id": baby_id})
        obs = r.json()
        late = datetime.fromisoformat(obs["start_time"]) + timedelta(hours=3)
        r = client.post(f"/api/nicu/observations/{obs['id']}/end",
                        json={"end_time": late.isoformat()})
        assert r.status_code == 400
        assert r.json()["error"]["msg"] == "End time cannot be in the future"

        r = client.get(f"/api/nicu/observations/{obs['id']}/charge")
        assert r.json()["is_estimate"] is True

    def test_running_charge_is_estimate(self, client, baby_id):
        r = client.post("/api/nicu/observations",
                        json={
                            "baby_patient_id": baby_id,
                            "hourly_rate": 650
                        })
        obs_id = r.json()["id"]

        r = client.get(f"/api/nicu/observations/{obs_id}/charge")
        assert r.status_code == 200
        assert r.json()["is_estimate"] is True
        assert r.json()["hours"] == 1
        assert Decimal(r.json()["charge"]) == Decimal("650")

    def test_end_before_start_rejected(self, client, baby_id):
        r = client.post("/api/nicu/observations",
                        json={"baby_patient_id": baby_id})
        obs = r.json()
        early = datetime.fromisoformat(obs["start_time"]) - timedelta(hours=1)
        r = client.post(f"/api/nicu/observations/{obs['id']}/end",
                        json={"end_time": early.isoformat()})
        assert r.status_code == 400

    def test_unknown_baby(self, client):
        r = client.post("/api/nicu/observations",
                        json={"baby_patient_id": 4040})
        assert r.status_code == 404
        r = client.get("/api/nicu/observations",
                       params={"baby_patient_id": 4040})
        assert r.status_code == 404
