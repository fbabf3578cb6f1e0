"""
HTTP adapter tests for the /identify endpoint
"""

import httpx
import pytest

import main
from errors import ConsistencyFault, StorageError
from services.identity_service import IdentityService


@pytest.fixture
def client_for(monkeypatch, db, service):
    """ASGI client whose app talks to the per-test database"""
    monkeypatch.setattr(main, "identity_service", service)
    monkeypatch.setattr(main, "db_manager", db)

    def _client(raise_app_exceptions=True):
        transport = httpx.ASGITransport(app=main.app, raise_app_exceptions=raise_app_exceptions)
        return httpx.AsyncClient(transport=transport, base_url="http://test")

    return _client


class FailingService(IdentityService):

    def __init__(self, error):
        super().__init__(unit_of_work=lambda: None)
        self.error = error

    async def resolve(self, email, phone):
        raise self.error


async def test_identify_creates_and_links(client_for):
    async with client_for() as client:
        first = await client.post("/identify", json={"email": "lorraine@hillvalley.edu", "phoneNumber": "123456"})
        second = await client.post("/identify", json={"email": "mcfly@hillvalley.edu", "phoneNumber": 123456})

    assert first.status_code == 200
    primary_id = first.json()["contact"]["primaryContactId"]
    assert second.status_code == 200
    assert second.json() == {
        "contact": {
            "primaryContactId": primary_id,
            "emails": ["lorraine@hillvalley.edu", "mcfly@hillvalley.edu"],
            "phoneNumbers": ["123456"],
            "secondaryContactIds": [primary_id + 1],
        }
    }


async def test_identify_accepts_null_string(client_for):
    async with client_for() as client:
        response = await client.post("/identify", json={"email": "null", "phoneNumber": "123456"})

    assert response.status_code == 200
    assert response.json()["contact"]["emails"] == []


@pytest.mark.parametrize("payload", [{}, {"email": None, "phoneNumber": None}, {"email": ""}])
async def test_identify_rejects_missing_identifiers(client_for, payload):
    async with client_for() as client:
        response = await client.post("/identify", json=payload)

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


@pytest.mark.parametrize("error, code", [
    (StorageError("connection refused to db.internal:5432"), "StorageError"),
    (ConsistencyFault("chain", details={"primary_id": 7}), "ConsistencyFault"),
])
async def test_identify_hides_internal_failures(client_for, monkeypatch, error, code):
    monkeypatch.setattr(main, "identity_service", FailingService(error))

    async with client_for() as client:
        response = await client.post("/identify", json={"email": "a@x.com"})

    assert response.status_code == 500
    assert response.json() == {
        "error": code,
        "message": "Unable to process identity reconciliation request",
    }


async def test_identify_unexpected_error_is_opaque(client_for, monkeypatch):
    monkeypatch.setattr(main, "identity_service", FailingService(RuntimeError("boom")))

    async with client_for(raise_app_exceptions=False) as client:
        response = await client.post("/identify", json={"email": "a@x.com"})

    assert response.status_code == 500
    assert response.json()["error"] == "InternalServerError"
    assert "boom" not in response.text


async def test_health_reports_database(client_for):
    async with client_for() as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["database"]["status"] == "connected"


async def test_unknown_route(client_for):
    async with client_for() as client:
        response = await client.get("/nope")

    assert response.status_code == 404
    assert response.json() == {"message": "Not found"}
