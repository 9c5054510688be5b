import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app import database
from app import main
from app.config import Settings
from app.rate_limit import RATE_LIMIT_MESSAGE, install_rate_limit


class _UnreachableEngine:
    def connect(self):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_ping_reports_a_reachable_database():
    assert database.ping() is True


def test_ping_reports_an_unreachable_database(monkeypatch):
    monkeypatch.setattr(database, "engine", _UnreachableEngine())

    assert database.ping() is False


def test_startup_continues_without_database(monkeypatch, caplog):
    caplog.set_level(logging.WARNING, logger="app.main")
    created = []
    monkeypatch.setattr(main, "ping", lambda: False)
    monkeypatch.setattr(main, "init_db", lambda: created.append(True))

    assert main.prepare_database() is False
    assert created == []
    assert "DB not reachable" in caplog.text


def test_startup_creates_tables_when_database_is_up(monkeypatch):
    created = []
    monkeypatch.setattr(main, "ping", lambda: True)
    monkeypatch.setattr(main, "init_db", lambda: created.append(True))

    assert main.prepare_database() is True
    assert created == [True]


def _limited_app(config: Settings) -> FastAPI:
    app = FastAPI()
    install_rate_limit(app, config)

    @app.get("/albums")
    def albums():
        return {"success": True}

    return app


def test_rate_limit_rejects_once_budget_is_spent():
    config = Settings(rate_limit_enabled=True, rate_limit_max=2, rate_limit_window_minutes=15)
    client = TestClient(_limited_app(config))

    assert client.get("/albums").status_code == 200
    assert client.get("/albums").status_code == 200

    r = client.get("/albums")
    assert r.status_code == 429
    assert r.json() == {"success": False, "message": RATE_LIMIT_MESSAGE}


def test_rate_limit_can_be_switched_off():
    config = Settings(rate_limit_enabled=False, rate_limit_max=1)
    client = TestClient(_limited_app(config))

    for _ in range(3):
        assert client.get("/albums").status_code == 200


def test_rate_limit_string():
    assert Settings(rate_limit_max=100, rate_limit_window_minutes=15).rate_limit == "100/15 minutes"
