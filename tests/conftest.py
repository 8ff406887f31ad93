from __future__ import annotations

import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

import pytest


_TEST_ROOT = Path(tempfile.mkdtemp(prefix="eduquest_test_"))
_DB_PATH = _TEST_ROOT / "eduquest_test.db"

os.environ["EDUQUEST_DB_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["EDUQUEST_AUTH_JWT_SECRET"] = "test-secret"
os.environ["EDUQUEST_ADMIN_TOKEN"] = "test-admin"
os.environ["EDUQUEST_SYNC_MODE"] = "off"
os.environ["EDUQUEST_DAY_TIMEZONE"] = "UTC"

FIXED_NOW = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)


@pytest.fixture(scope="session")
def db_schema() -> None:
    from eduquest_api.db import Base, engine

    import eduquest_api.models  # noqa: F401

    Base.metadata.create_all(engine)


@pytest.fixture()
def fixed_clock():
    from eduquest_api.clock import FixedClock

    return FixedClock(FIXED_NOW)


@pytest.fixture()
def user_id() -> str:
    return f"user_t{uuid4().hex[:10]}"


@pytest.fixture()
def api_client(db_schema, fixed_clock):
    from fastapi.testclient import TestClient

    from eduquest_api.deps import get_clock
    from eduquest_api.main import app

    app.dependency_overrides[get_clock] = lambda: fixed_clock
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(api_client):
    def _login(username: str | None = None) -> dict[str, str]:
        name = username or f"t{uuid4().hex[:10]}"
        resp = api_client.post("/api/auth/login", json={"username": name})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _login
