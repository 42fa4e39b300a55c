import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch

from intake.core.orchestrator import IntakeEngine, set_engine
from intake.core.risk import RiskEngine
from intake.main import app
from intake.settings import settings
from intake.store.models import Session
from intake.store.session_repo import SessionStore

client = TestClient(app)
HEADERS = {"x-admin-key": "admin-secret"}


@pytest.fixture(autouse=True)
def engine(fake_redis, clock):
    eng = IntakeEngine(sessions=SessionStore(fake_redis), risk=RiskEngine(fake_redis), pipeline=object())
    set_engine(eng)
    with patch.object(settings, "ADMIN_RBAC_ENABLED", True), patch.object(settings, "ADMIN_API_KEY", "admin-secret"):
        yield eng
    set_engine(None)


def test_admin_key_required():
    assert client.get("/admin/stats").status_code == 403
    assert client.get("/admin/stats", headers={"x-admin-key": "wrong"}).status_code == 403


def test_admin_disabled_without_key():
    with patch.object(settings, "ADMIN_API_KEY", ""):
        assert client.get("/admin/stats", headers=HEADERS).status_code == 403


def test_block_and_unblock(engine):
    resp = client.post("/admin/users/u1/block", json={"reason": "abuse", "durationMinutes": 15}, headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["blocked"] is True
    assert engine.risk.check_block("u1")["remainingMinutes"] == 15

    resp = client.delete("/admin/users/u1/block", headers=HEADERS)
    assert resp.json() == {"userId": "u1", "unblocked": True}
    assert engine.risk.check_block("u1") == {"blocked": False}


def test_block_rejects_non_positive_duration():
    resp = client.post("/admin/users/u1/block", json={"durationMinutes": 0}, headers=HEADERS)
    assert resp.status_code == 422


def test_risk_profile(engine):
    assert client.get("/admin/users/u1/risk", headers=HEADERS).status_code == 404
    engine.risk.record_action("u1", "start")
    body = client.get("/admin/users/u1/risk", headers=HEADERS).json()
    assert body["actionCounts"] == {"start": 1}
    assert body["riskScore"] == 0


def test_export_and_stats(engine, clock):
    engine.sessions.save(Session(userId="u1", formKind="complaint", state="awaiting_phone", fields={"name": "Ivan"}))
    engine.risk.record_action("u1", "start")
    clock.advance(minutes=90)
    engine.sessions.save(Session(userId="u2"))

    export = client.get("/admin/users/u1", headers=HEADERS).json()
    assert export["session"]["state"] == "awaiting_phone"
    assert export["riskProfile"]["actionCounts"] == {"start": 1}
    assert export["block"] == {"blocked": False}

    stats = client.get("/admin/stats", headers=HEADERS).json()
    assert stats["totalUsers"] == 2
    assert stats["activeLastHour"] == 1
    assert stats["activeLastDay"] == 2
    assert stats["formsInProgress"] == 1

    active = client.get("/admin/active?minutes=60", headers=HEADERS).json()
    assert [u["userId"] for u in active["users"]] == ["u2"]


def test_submission_counters():
    body = client.get("/admin/submissions", headers=HEADERS).json()
    assert body["delivered"] == 0
    assert body["masked_failures"] == 0


def test_manual_sweep(engine, clock):
    engine.sessions.save(Session(userId="u1"))
    clock.advance(minutes=60 * 25)
    body = client.post("/admin/sweep", headers=HEADERS).json()
    assert body["sessionsEvicted"] == 1
