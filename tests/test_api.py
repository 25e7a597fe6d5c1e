"""HTTP-level tests for the quote API."""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from autoquote.api import routes as api_routes
from autoquote.config import settings
from autoquote.quoting import routes as quoting_routes

HEADERS = {"X-API-Key": settings.autoquote_api_key}


@pytest_asyncio.fixture
async def client(engine, seeded):
    api_routes.configure(engine)
    transport = ASGITransport(app=api_routes.app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    quoting_routes.set_quote_service(None)


def _quote_body(**overrides):
    body = {
        "party_id": str(uuid.uuid4()),
        "vehicle_id": str(uuid.uuid4()),
        "effective_date": "2026-11-01",
        "expiration_date": "2027-05-01",
        "coverages": [
            {
                "coverage_code": "BODILY_INJURY",
                "limits": {"per_person": 100000, "per_accident": 300000},
            },
            {"coverage_code": "COLLISION", "deductible": 500},
        ],
    }
    body.update(overrides)
    return body


class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_key(self, client):
        response = await client.post("/v1/quotes", json=_quote_body())
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_wrong_key(self, client):
        response = await client.post(
            "/v1/quotes", json=_quote_body(), headers={"X-API-Key": "nope"}
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_rate_limited(self, client, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_max", 2)
        codes = [
            (await client.get("/v1/health", headers=HEADERS)).status_code for _ in range(3)
        ]
        assert codes == [200, 200, 429]


class TestQuotes:
    @pytest.mark.asyncio
    async def test_create_and_fetch(self, client):
        response = await client.post("/v1/quotes", json=_quote_body(), headers=HEADERS)
        assert response.status_code == 201
        created = response.json()
        assert created["policy"]["status"] == "QUOTED"
        assert created["coverages"]["total_coverages"] == 2
        assert created["premium"]["total_premium"] == 800.0
        assert [c["coverage_code"] for c in created["premium"]["breakdown"]] == [
            "BODILY_INJURY", "COLLISION",
        ]

        policy_id = created["policy"]["policy_id"]
        detail = await client.get(f"/v1/quotes/{policy_id}", headers=HEADERS)
        assert detail.status_code == 200
        body = detail.json()
        assert body["policy_number"] == created["policy"]["policy_number"]
        assert len(body["coverages"]) == 2
        assert body["expiration"]["urgency"] == "normal"
        assert body["premium"]["total_premium"] == created["premium"]["total_premium"]

        by_ref = await client.get(
            f"/v1/quotes/reference/{body['policy_number']}", headers=HEADERS
        )
        assert by_ref.status_code == 200
        assert by_ref.json()["policy_id"] == policy_id

    @pytest.mark.asyncio
    async def test_unknown_coverage_code(self, client):
        body = _quote_body(coverages=[{"coverage_code": "JETPACK"}])
        response = await client.post("/v1/quotes", json=body, headers=HEADERS)

        assert response.status_code == 422
        assert response.json() == {
            "error": "coverage_not_found",
            "detail": "Coverage not found: JETPACK",
            "coverage_code": "JETPACK",
        }

    @pytest.mark.asyncio
    async def test_inverted_term_rejected(self, client):
        body = _quote_body(expiration_date="2026-10-01")
        response = await client.post("/v1/quotes", json=body, headers=HEADERS)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_negative_deductible_rejected(self, client):
        body = _quote_body(coverages=[{"coverage_code": "COLLISION", "deductible": -1}])
        response = await client.post("/v1/quotes", json=body, headers=HEADERS)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_limit_beyond_column_precision_rejected(self, client):
        body = _quote_body(coverages=[
            {"coverage_code": "BODILY_INJURY", "limits": {"per_person": 1e13}},
        ])
        response = await client.post("/v1/quotes", json=body, headers=HEADERS)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_deductible_beyond_column_precision_rejected(self, client):
        body = _quote_body(coverages=[{"coverage_code": "COLLISION", "deductible": 1e9}])
        response = await client.post("/v1/quotes", json=body, headers=HEADERS)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_largest_storable_amounts_accepted(self, client):
        body = _quote_body(coverages=[
            {"coverage_code": "BODILY_INJURY", "limits": {"per_accident": 9_999_999_999.99}},
            {"coverage_code": "COLLISION", "deductible": 99_999_999.99},
        ])
        response = await client.post("/v1/quotes", json=body, headers=HEADERS)
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_state_minimum_shortfall_reported(self, client):
        body = _quote_body(
            state_code="TX",
            coverages=[
                {
                    "coverage_code": "BODILY_INJURY",
                    "limits": {"per_person": 25000, "per_accident": 50000},
                },
            ],
        )
        response = await client.post("/v1/quotes", json=body, headers=HEADERS)
        assert response.status_code == 201
        assert response.json()["premium"]["notes"] == [
            "Bodily injury limit must meet the TX minimum of $60,000",
        ]

    @pytest.mark.asyncio
    async def test_missing_quote(self, client):
        response = await client.get(f"/v1/quotes/{uuid.uuid4()}", headers=HEADERS)
        assert response.status_code == 404
        assert response.json()["error"] == "policy_not_found"


class TestCoverageEndpoints:
    @pytest.mark.asyncio
    async def test_replace_list_remove(self, client):
        body = _quote_body()
        created = (await client.post("/v1/quotes", json=body, headers=HEADERS)).json()
        policy_id = created["policy"]["policy_id"]

        replaced = await client.put(
            f"/v1/quotes/{policy_id}/coverages",
            json={
                "vehicle_id": body["vehicle_id"],
                "effective_date": body["effective_date"],
                "expiration_date": body["expiration_date"],
                "coverages": [{"coverage_code": "COMPREHENSIVE", "deductible": 250}],
            },
            headers=HEADERS,
        )
        assert replaced.status_code == 200
        assert replaced.json()["total_coverages"] == 1

        listed = await client.get(f"/v1/policies/{policy_id}/coverages", headers=HEADERS)
        assert listed.status_code == 200
        assert len(listed.json()) == 1

        removed = await client.delete(f"/v1/quotes/{policy_id}/coverages", headers=HEADERS)
        assert removed.json() == {"policy_id": policy_id, "removed": 1}

        listed = await client.get(f"/v1/policies/{policy_id}/coverages", headers=HEADERS)
        assert listed.json() == []

    @pytest.mark.asyncio
    async def test_remove_on_missing_policy(self, client):
        response = await client.delete(f"/v1/quotes/{uuid.uuid4()}/coverages", headers=HEADERS)
        assert response.status_code == 404


class TestStatus:
    @pytest.mark.asyncio
    async def test_patch_status(self, client):
        created = (await client.post("/v1/quotes", json=_quote_body(), headers=HEADERS)).json()
        policy_id = created["policy"]["policy_id"]

        response = await client.patch(
            f"/v1/policies/{policy_id}/status", json={"status": "BOUND"}, headers=HEADERS
        )
        assert response.status_code == 200
        assert response.json() == {"policy_id": policy_id, "status": "BOUND"}

        detail = (await client.get(f"/v1/quotes/{policy_id}", headers=HEADERS)).json()
        assert detail["status"] == "BOUND"
        assert detail["expiration"] is None

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, client):
        created = (await client.post("/v1/quotes", json=_quote_body(), headers=HEADERS)).json()
        response = await client.patch(
            f"/v1/policies/{created['policy']['policy_id']}/status",
            json={"status": "ON_HOLD"},
            headers=HEADERS,
        )
        assert response.status_code == 422


class TestErrorsAndHealth:
    @pytest.mark.asyncio
    async def test_database_error_maps_to_503(self, client, monkeypatch):
        async def _boom(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        service = quoting_routes._get_quote_service()
        monkeypatch.setattr(service, "get_quote", _boom)

        response = await client.get(f"/v1/quotes/{uuid.uuid4()}", headers=HEADERS)
        assert response.status_code == 503
        assert response.json() == {"error": "database_error", "detail": "Database unavailable."}

    @pytest.mark.asyncio
    async def test_health(self, client):
        await client.post("/v1/quotes", json=_quote_body(), headers=HEADERS)

        response = await client.get("/v1/health", headers=HEADERS)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["products_loaded"] == 1
        assert body["coverages_loaded"] == 10
        assert body["open_quotes"] == 1

    @pytest.mark.asyncio
    async def test_uninitialised_service(self, client):
        quoting_routes.set_quote_service(None)
        response = await client.get(f"/v1/quotes/{uuid.uuid4()}", headers=HEADERS)
        assert response.status_code == 503
