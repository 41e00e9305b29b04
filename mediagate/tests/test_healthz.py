from fastapi.testclient import TestClient

import mediagate.api.health as health_api
import mediagate.core.database as database
from mediagate.main import app

client = TestClient(app)


def test_healthz_always_ok():
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json().get("status") == "ok"


def test_readyz_ok_with_real_schema(db):
    resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json().get("status") == "ok"


def test_readyz_reports_missing_tables(monkeypatch):
    class FakeInspector:
        def has_table(self, name):
            return name != "purchases"

    monkeypatch.setattr(health_api, "check_connection", lambda: True)
    monkeypatch.setattr(health_api, "get_engine", lambda: object())
    monkeypatch.setattr(health_api, "inspect", lambda engine: FakeInspector())

    resp = client.get("/readyz")
    assert resp.status_code == 503
    assert "purchases" in resp.json().get("detail", "")


def test_readyz_handles_db_down(monkeypatch):
    def boom():
        raise RuntimeError("db down")

    monkeypatch.setattr(database, "get_engine", boom)

    resp = client.get("/readyz")
    body = resp.json()
    assert resp.status_code == 503
    assert body.get("status") == "error"
    assert "database" in body.get("detail", "")


def test_check_connection(db, monkeypatch):
    assert database.check_connection() is True

    def boom():
        raise RuntimeError("db down")

    monkeypatch.setattr(database, "get_engine", boom)
    assert database.check_connection() is False
