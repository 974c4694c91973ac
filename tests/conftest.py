"""
Pytest configuration for the Agricultural Initiatives API.

Provides fixtures for:
- An isolated SQLite key-value store per test
- A controllable clock for the initiative service
- A FastAPI app and TestClient wired to a temporary database
- A signed-in user's Authorization headers
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone

# Importing the app module builds a default application at import time;
# point it at a throwaway database before any package import happens.
os.environ.setdefault(
    "DATABASE_URL", os.path.join(tempfile.mkdtemp(prefix="initiatives-tests-"), "default.db")
)

import pytest
from fastapi.testclient import TestClient

from agri_initiatives_api.app.core.config import Settings
from agri_initiatives_api.app.core.kv_store import SQLiteKeyValueStore
from agri_initiatives_api.app.main import create_app
from agri_initiatives_api.app.schemas.user import CallerIdentity
from agri_initiatives_api.app.services.initiative_service import InitiativeService


class FakeClock:
    """Clock that advances by ``step`` on every call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "test.db")


@pytest.fixture
def store(db_path) -> SQLiteKeyValueStore:
    kv = SQLiteKeyValueStore(db_path)
    kv.initialize()
    return kv


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def service(store, clock) -> InitiativeService:
    return InitiativeService(store, clock=clock)


@pytest.fixture
def caller() -> CallerIdentity:
    return CallerIdentity(id="user-1", email="farmer@example.com", name="Farmer")


@pytest.fixture
def valid_payload() -> dict:
    return {
        "title": "مشروع ري بالتنقيط",
        "description": "تركيب أنظمة ري حديثة",
        "category": "ري وموارد مائية",
        "targetArea": "الوادي",
        "beneficiaries": 120,
        "budget": 50000,
    }


@pytest.fixture
def app_settings(db_path) -> Settings:
    return Settings(
        database_url=db_path,
        kv_backend="sqlite",
        auth_backend="local",
        secret_key="test-secret",
        public_anon_key="",
        api_prefix="/api/v1",
    )


@pytest.fixture
def client(app_settings):
    app = create_app(app_settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client) -> dict:
    response = client.post(
        "/api/v1/signup",
        json={"email": "farmer@example.com", "password": "s3cret-pass", "name": "Farmer"},
    )
    assert response.status_code == 200, response.text
    response = client.post(
        "/api/v1/login",
        json={"email": "farmer@example.com", "password": "s3cret-pass"},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
