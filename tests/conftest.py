# tests/conftest.py
import os
import tempfile
import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

# --- Environment must be in place before anything imports app.config ---
_TMP = Path(tempfile.mkdtemp(prefix="album-log-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{(_TMP / 'test.sqlite3').as_posix()}"
os.environ["JWT_SECRET"] = "album-log-test-secret-0123456789abcdef"
os.environ["TOKEN_TTL_HOURS"] = "24"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["KAFKA_BROKER"] = ""
os.environ["LOG_FILE"] = ""
os.environ["SEED_EMAIL"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"

from fastapi.testclient import TestClient  # noqa: E402

from app.config import Settings  # noqa: E402
from app.database import init_db  # noqa: E402
from app.services.authority import SessionAuthority  # noqa: E402
from app.services.passwords import hash_password  # noqa: E402
from app.services.sessions import SessionLedger  # noqa: E402
from app.services.tokens import TokenCodec  # noqa: E402
from app.services.users import AccountStore  # noqa: E402

TEST_SECRET = os.environ["JWT_SECRET"]


class RecordingEmitter:
    """Collects published records instead of sending them."""

    def __init__(self):
        self.records = []

    def publish(self, record):
        self.records.append(record)

    def actions(self):
        return [record.action for record in self.records]


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


@pytest.fixture(scope="session", autouse=True)
def _database():
    init_db()
    yield


@pytest.fixture(scope="session")
def client():
    from app.main import app

    # 'with' runs the lifespan: tables, emitter start, and shutdown
    with TestClient(app) as c:
        yield c


@pytest.fixture
def test_settings():
    return Settings(jwt_secret=TEST_SECRET, token_ttl_hours=24, event_queue_size=10)


@pytest.fixture
def codec(test_settings):
    return TokenCodec(test_settings.jwt_secret, test_settings.jwt_algorithm)


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def ledger():
    return SessionLedger()


@pytest.fixture
def touch_executor():
    executor = ThreadPoolExecutor(max_workers=1)
    yield executor
    executor.shutdown(wait=True)


@pytest.fixture
def authority(test_settings, codec, ledger, emitter, touch_executor):
    return SessionAuthority(test_settings, codec, ledger, emitter, touch_executor)


@pytest.fixture
def accounts():
    return AccountStore()


@pytest.fixture
def account(accounts):
    email = unique_email()
    account_id = accounts.insert_account(email, hash_password("p1", rounds=4))
    return accounts.get_account(account_id)


@pytest.fixture
def login(client):
    """Register a fresh account over HTTP and return (token, email)."""

    def _login(email=None, password="p1"):
        email = email or unique_email()
        r = client.post("/api/auth/register", json={"email": email, "password": password})
        assert r.status_code == 201, r.text
        r = client.post("/api/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return r.json()["data"]["token"], email

    return _login


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_header():
    return bearer
