import asyncio
import time
from datetime import datetime

import httpx

from agri_initiatives_api.app.core.config import Settings
from agri_initiatives_api.app.main import create_app
from fastapi.testclient import TestClient


API = "/api/v1"

PAYLOAD = {
    "title": "مشروع ري بالتنقيط",
    "description": "تركيب أنظمة ري حديثة",
    "category": "ري وموارد مائية",
    "beneficiaries": 10,
    "budget": 1000,
}


def _timestamp(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _create(client, headers, **overrides):
    response = client.post(f"{API}/initiatives", json=dict(PAYLOAD, **overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["initiative"]


def test_health(client):
    response = client.get(f"{API}/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_signup_requires_fields(client):
    response = client.post(f"{API}/signup", json={"email": "a@example.com", "password": "pw"})
    assert response.status_code == 400
    assert response.json() == {"error": "Email, password, and name are required"}


def test_signup_duplicate_email_is_bad_request(client, auth_headers):
    response = client.post(
        f"{API}/signup", json={"email": "farmer@example.com", "password": "pw", "name": "Again"}
    )
    assert response.status_code == 400
    assert "already been registered" in response.json()["error"]


def test_signup_returns_user_and_profile_is_mirrored(client):
    response = client.post(
        f"{API}/signup", json={"email": "grower@example.com", "password": "pw", "name": "Grower"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "User created successfully"
    assert body["user"]["email"] == "grower@example.com"
    assert body["user"]["name"] == "Grower"

    login = client.post(f"{API}/login", json={"email": "grower@example.com", "password": "pw"})
    token = login.json()["access_token"]
    me = client.get(f"{API}/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    profile = me.json()["user"]
    assert profile["id"] == body["user"]["id"]
    assert profile["role"] == "user"
    assert profile["createdAt"]


def test_login_with_wrong_password(client, auth_headers):
    response = client.post(f"{API}/login", json={"email": "farmer@example.com", "password": "nope"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials"}


def test_signup_requires_public_key_when_configured(db_path):
    app = create_app(Settings(database_url=db_path, secret_key="s", public_anon_key="anon-key"))
    with TestClient(app) as client:
        body = {"email": "a@example.com", "password": "pw", "name": "A"}
        assert client.post(f"{API}/signup", json=body).status_code == 401
        response = client.post(f"{API}/signup", json=body, headers={"Authorization": "Bearer anon-key"})
        assert response.status_code == 200


def test_create_and_round_trip(client, auth_headers):
    response = client.post(f"{API}/initiatives", json=PAYLOAD, headers=auth_headers)
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Initiative created successfully"
    created = body["initiative"]
    assert created["status"] == "active"
    assert created["targetArea"] == ""
    assert created["createdAt"] == created["updatedAt"]

    fetched = client.get(f"{API}/initiatives/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["initiative"] == created


def test_create_without_token_writes_nothing(client):
    response = client.post(f"{API}/initiatives", json=PAYLOAD)
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized - No token provided"}
    assert client.get(f"{API}/initiatives").json() == {"initiatives": []}


def test_create_with_rejected_token_writes_nothing(client):
    response = client.post(f"{API}/initiatives", json=PAYLOAD, headers={"Authorization": "Bearer forged.token.value"})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized - Invalid token"}
    assert client.get(f"{API}/initiatives").json() == {"initiatives": []}


def test_create_with_malformed_header(client):
    response = client.post(f"{API}/initiatives", json=PAYLOAD, headers={"Authorization": "Token abc"})
    assert response.status_code == 401


def test_create_missing_required_field(client, auth_headers):
    for field in ("title", "description", "category"):
        payload = {k: v for k, v in PAYLOAD.items() if k != field}
        response = client.post(f"{API}/initiatives", json=payload, headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {"error": "Title, description, and category are required"}


def test_create_rejects_non_object_body(client, auth_headers):
    response = client.post(f"{API}/initiatives", json=["not", "an", "object"], headers=auth_headers)
    assert response.status_code == 400
    assert "error" in response.json()


def test_get_unknown_initiative(client):
    response = client.get(f"{API}/initiatives/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "Initiative not found"}


def test_list_newest_first(client, auth_headers):
    ids = [_create(client, auth_headers, title=f"T{i}")["id"] for i in range(3)]
    listed = client.get(f"{API}/initiatives").json()["initiatives"]
    assert [item["id"] for item in listed] == list(reversed(ids))


def test_update_preserves_immutable_fields(client, auth_headers):
    created = _create(client, auth_headers)
    response = client.put(
        f"{API}/initiatives/{created['id']}",
        json={
            "id": "other",
            "createdBy": "someone-else",
            "createdAt": "2000-01-01T00:00:00Z",
            "status": "completed",
            "beneficiaries": 99,
        },
        headers=auth_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Initiative updated successfully"
    updated = body["initiative"]
    assert updated["id"] == created["id"]
    assert updated["createdBy"] == created["createdBy"]
    assert updated["createdAt"] == created["createdAt"]
    assert _timestamp(updated["updatedAt"]) > _timestamp(created["updatedAt"])
    assert updated["status"] == "completed"
    assert updated["beneficiaries"] == 99
    assert updated["title"] == created["title"]


def test_update_requires_auth_and_existing_record(client, auth_headers):
    created = _create(client, auth_headers)
    assert client.put(f"{API}/initiatives/{created['id']}", json={"title": "x"}).status_code == 401
    response = client.put(f"{API}/initiatives/missing", json={"title": "x"}, headers=auth_headers)
    assert response.status_code == 404
    response = client.put(f"{API}/initiatives/{created['id']}", json={"status": "unknown"}, headers=auth_headers)
    assert response.status_code == 400


def test_any_authenticated_user_may_edit(client, auth_headers):
    created = _create(client, auth_headers)
    client.post(f"{API}/signup", json={"email": "other@example.com", "password": "pw", "name": "Other"})
    token = client.post(f"{API}/login", json={"email": "other@example.com", "password": "pw"}).json()["access_token"]
    other_headers = {"Authorization": f"Bearer {token}"}

    response = client.put(f"{API}/initiatives/{created['id']}", json={"title": "Edited"}, headers=other_headers)
    assert response.status_code == 200
    assert response.json()["initiative"]["createdBy"] == created["createdBy"]
    assert client.delete(f"{API}/initiatives/{created['id']}", headers=other_headers).status_code == 200


def test_delete_twice(client, auth_headers):
    created = _create(client, auth_headers)
    assert client.delete(f"{API}/initiatives/{created['id']}").status_code == 401

    response = client.delete(f"{API}/initiatives/{created['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Initiative deleted successfully"}

    response = client.delete(f"{API}/initiatives/{created['id']}", headers=auth_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Initiative not found"}


def test_statistics(client, auth_headers):
    _create(client, auth_headers, beneficiaries=10, budget=1000, category="زراعة عضوية")
    _create(client, auth_headers, beneficiaries=0, budget=0, status="completed", category="زراعة عضوية")
    _create(client, auth_headers, beneficiaries=25, budget=500, category="تقنيات حديثة")

    response = client.get(f"{API}/statistics")
    assert response.status_code == 200
    assert response.json() == {
        "stats": {
            "totalInitiatives": 3,
            "activeInitiatives": 2,
            "completedInitiatives": 1,
            "totalBeneficiaries": 35,
            "totalBudget": 1500,
            "categories": {"زراعة عضوية": 2, "تقنيات حديثة": 1},
        }
    }


def test_store_failure_returns_500(client):
    class BrokenStore:
        def get_by_prefix(self, prefix):
            raise RuntimeError("connection lost")

    client.app.state.kv_store = BrokenStore()
    response = client.get(f"{API}/initiatives")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch initiatives"}
    response = client.get(f"{API}/statistics")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch statistics"}


def test_cors_preflight(client):
    response = client.options(
        f"{API}/initiatives",
        headers={
            "Origin": "https://dashboard.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Authorization, Content-Type",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "PUT" in response.headers["access-control-allow-methods"]


def test_records_outside_the_write_schema_are_listed(client, auth_headers):
    created = _create(client, auth_headers)
    client.app.state.kv_store.set(
        "initiative:legacy",
        {
            "id": "legacy",
            "title": "Old project",
            "description": "Imported",
            "category": "أخرى",
            "status": "paused",
            "createdBy": "user-9",
            "createdAt": "2025-01-01T00:00:00",
            "updatedAt": "2025-01-01T00:00:00",
        },
    )

    response = client.get(f"{API}/initiatives")
    assert response.status_code == 200
    assert [item["id"] for item in response.json()["initiatives"]] == [created["id"], "legacy"]

    response = client.get(f"{API}/initiatives/legacy")
    assert response.status_code == 200
    assert response.json()["initiative"]["status"] == "paused"

    stats = client.get(f"{API}/statistics").json()["stats"]
    assert stats["totalInitiatives"] == 2
    assert stats["activeInitiatives"] == 1


class SlowStore:
    """Delegates to a real store after blocking like a remote round-trip."""

    def __init__(self, inner, delay):
        self.inner = inner
        self.delay = delay

    def get_by_prefix(self, prefix):
        time.sleep(self.delay)
        return self.inner.get_by_prefix(prefix)


def test_slow_store_does_not_stall_other_requests(app_settings):
    app = create_app(app_settings)
    app.state.kv_store = SlowStore(app.state.kv_store, delay=0.5)

    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:

            async def timed_health():
                await asyncio.sleep(0.1)
                started = time.perf_counter()
                response = await http.get(f"{API}/health")
                return response, time.perf_counter() - started

            return await asyncio.gather(http.get(f"{API}/statistics"), timed_health())

    stats, (health, waited) = asyncio.run(scenario())
    assert stats.status_code == 200
    assert health.status_code == 200
    assert waited < 0.3
