"""Integration tests for the CRM API endpoints.

Uses CRMServices seeded with sample records (latency disabled) placed on
app.state, and httpx AsyncClient over ASGITransport. Tests the contact,
deal, activity, dashboard, data and health endpoints, plus domain-error
mapping (404 / 422) and the 503 when services are not initialized.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.crm.records.service import CRMServices


# ── Test Fixtures ────────────────────────────────────────────────────────────


def _make_app():
    """Create a minimal FastAPI app with the v1 router only."""
    from fastapi import FastAPI

    from src.crm.api.v1.router import router

    app = FastAPI()
    app.include_router(router)
    return app


@pytest_asyncio.fixture
async def client(services: CRMServices):
    """Test client backed by the seeded sample services."""
    app = _make_app()
    app.state.services = services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


NEW_CONTACT = {
    "name": "Dana Lee",
    "email": "dana@example.com",
    "phone": "+1-555-0199",
    "company": "Acme",
}

NEW_DEAL = {
    "title": "Acme Pilot",
    "value": 1000,
    "contact_id": 1,
    "expected_close": "2025-01-01",
}


# ── Contacts ─────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_contacts_sorted_by_name(client):
    """GET /api/v1/contacts -> 200, name order."""
    response = await client.get("/api/v1/contacts")
    assert response.status_code == 200
    assert [c["name"] for c in response.json()] == ["Emily Davis", "Mike Chen", "Sarah Johnson"]


@pytest.mark.asyncio
async def test_search_contacts(client):
    """GET /api/v1/contacts?search=... -> case-insensitive matches."""
    response = await client.get("/api/v1/contacts", params={"search": "INNOVATE"})
    assert [c["id"] for c in response.json()] == [2]


@pytest.mark.asyncio
async def test_invalid_contact_sort(client):
    response = await client.get("/api/v1/contacts", params={"sort_by": "shoe_size"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_contact(client):
    """POST /api/v1/contacts -> 201 with the next id."""
    response = await client.post("/api/v1/contacts", json=NEW_CONTACT)
    assert response.status_code == 201
    data = response.json()
    assert data["id"] == 4
    assert data["name"] == "Dana Lee"
    assert data["created_at"] is not None


@pytest.mark.asyncio
async def test_create_contact_validation_errors(client):
    """POST /api/v1/contacts with bad input -> 422 with per-field messages."""
    response = await client.post("/api/v1/contacts", json={**NEW_CONTACT, "email": "nope", "phone": ""})
    assert response.status_code == 422
    errors = response.json()["detail"]["errors"]
    assert set(errors) == {"email", "phone"}


@pytest.mark.asyncio
async def test_get_contact_not_found(client):
    """GET /api/v1/contacts/{bad_id} -> 404."""
    response = await client.get("/api/v1/contacts/99")
    assert response.status_code == 404
    assert response.json()["detail"] == "contact not found: 99"


@pytest.mark.asyncio
async def test_update_contact_partial(client):
    """PATCH /api/v1/contacts/{id} only touches the sent fields."""
    response = await client.patch("/api/v1/contacts/1", json={"role": "CEO", "id": 77})
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == 1
    assert data["role"] == "CEO"
    assert data["email"] == "sarah@techcorp.com"


@pytest.mark.asyncio
async def test_update_contact_rejects_blank_required(client):
    response = await client.patch("/api/v1/contacts/1", json={"name": ""})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_delete_contact(client):
    """DELETE /api/v1/contacts/{id} -> 204, then 404."""
    response = await client.delete("/api/v1/contacts/3")
    assert response.status_code == 204
    assert (await client.get("/api/v1/contacts/3")).status_code == 404
    assert (await client.delete("/api/v1/contacts/3")).status_code == 404


@pytest.mark.asyncio
async def test_contact_deals(client):
    """GET /api/v1/contacts/{id}/deals -> that contact's deals."""
    response = await client.get("/api/v1/contacts/1/deals")
    assert response.status_code == 200
    assert [d["id"] for d in response.json()] == [1, 4]
    assert (await client.get("/api/v1/contacts/99/deals")).status_code == 404


# ── Deals ────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_deal_defaults(client):
    """POST /api/v1/deals without stage -> Lead at 10%."""
    response = await client.post("/api/v1/deals", json=NEW_DEAL)
    assert response.status_code == 201
    data = response.json()
    assert data["id"] == 5
    assert data["stage"] == "Lead"
    assert data["probability"] == 10
    assert data["expected_close"] == "2025-01-01"


@pytest.mark.asyncio
async def test_create_deal_invalid(client):
    response = await client.post(
        "/api/v1/deals", json={**NEW_DEAL, "value": 0, "stage": "Archived"}
    )
    assert response.status_code == 422
    assert set(response.json()["detail"]["errors"]) == {"value", "stage"}


@pytest.mark.asyncio
async def test_stage_change_flow(client):
    """Create a Lead deal, move it to Qualified, check probability and rollup."""
    created = (await client.post("/api/v1/deals", json={**NEW_DEAL, "stage": "Lead"})).json()

    response = await client.post(
        f"/api/v1/deals/{created['id']}/stage", json={"stage": "Qualified"}
    )
    assert response.status_code == 200
    assert response.json()["probability"] == 30

    pipeline = (await client.get("/api/v1/deals/pipeline")).json()
    qualified = next(r for r in pipeline["rollups"] if r["stage"] == "Qualified")
    assert qualified == {"stage": "Qualified", "count": 1, "value": 1000.0}
    assert [d["id"] for d in pipeline["stages"]["Qualified"]] == [created["id"]]


@pytest.mark.asyncio
async def test_pipeline_board(client):
    """GET /api/v1/deals/pipeline -> five forward columns."""
    response = await client.get("/api/v1/deals/pipeline")
    assert response.status_code == 200
    data = response.json()
    assert list(data["stages"]) == ["Lead", "Qualified", "Proposal", "Negotiation", "Closed Won"]
    assert data["total_value"] == 220000


@pytest.mark.asyncio
async def test_stage_change_unknown_stage(client):
    response = await client.post("/api/v1/deals/1/stage", json={"stage": "Archived"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_advance_and_retreat(client):
    advanced = await client.post("/api/v1/deals/2/advance")
    assert advanced.json()["stage"] == "Negotiation"
    retreated = await client.post("/api/v1/deals/2/retreat")
    assert retreated.json()["stage"] == "Proposal"


@pytest.mark.asyncio
async def test_advance_closed_deal(client):
    """Closed Won has no next stage -> 422."""
    response = await client.post("/api/v1/deals/3/advance")
    assert response.status_code == 422
    assert "no next stage" in response.json()["detail"]


@pytest.mark.asyncio
async def test_update_deal_unknown(client):
    response = await client.patch("/api/v1/deals/99", json={"title": "x"})
    assert response.status_code == 404


# ── Activities ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_activities_filters(client):
    """GET /api/v1/activities supports type, search, sort_by and contact_id."""
    assert [a["id"] for a in (await client.get("/api/v1/activities")).json()] == [2, 1, 3]

    by_type = await client.get("/api/v1/activities", params={"type": "meeting"})
    assert [a["id"] for a in by_type.json()] == [3]

    oldest = await client.get("/api/v1/activities", params={"sort_by": "oldest"})
    assert [a["id"] for a in oldest.json()] == [3, 1, 2]

    for_contact = await client.get("/api/v1/activities", params={"contact_id": 2})
    assert [a["id"] for a in for_contact.json()] == [2]


@pytest.mark.asyncio
async def test_list_activities_unknown_type(client):
    response = await client.get("/api/v1/activities", params={"type": "fax"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_activity(client):
    response = await client.post(
        "/api/v1/activities",
        json={"type": "email", "description": "Sent contract", "deal_id": 1},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["id"] == 4
    assert data["timestamp"] is not None


@pytest.mark.asyncio
async def test_create_activity_needs_link(client):
    response = await client.post("/api/v1/activities", json={"description": "Orphan"})
    assert response.status_code == 422
    assert "contact_id" in response.json()["detail"]["errors"]


@pytest.mark.asyncio
async def test_activity_stats(client):
    response = await client.get("/api/v1/activities/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["by_type"] == {"call": 1, "email": 1, "meeting": 1}


@pytest.mark.asyncio
async def test_update_and_delete_activity(client):
    updated = await client.patch("/api/v1/activities/1", json={"duration": 45})
    assert updated.json()["duration"] == 45
    assert (await client.delete("/api/v1/activities/1")).status_code == 204
    assert (await client.get("/api/v1/activities/1")).status_code == 404


@pytest.mark.asyncio
async def test_patch_activity_null_clears_fields(client):
    """PATCH with explicit nulls unlinks the deal and clears the duration."""
    response = await client.patch(
        "/api/v1/activities/1", json={"deal_id": None, "duration": None}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["deal_id"] is None
    assert data["duration"] is None
    assert data["contact_id"] == 1

    stored = (await client.get("/api/v1/activities/1")).json()
    assert stored["deal_id"] is None
    assert stored["duration"] is None


@pytest.mark.asyncio
async def test_patch_activity_cannot_drop_both_links(client):
    response = await client.patch(
        "/api/v1/activities/1", json={"contact_id": None, "deal_id": None}
    )
    assert response.status_code == 422


# ── Dashboard / Data / Health ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_dashboard(client):
    response = await client.get("/api/v1/dashboard")
    assert response.status_code == 200
    data = response.json()
    assert data["total_contacts"] == 3
    assert data["total_deals"] == 4
    assert data["win_rate"] == 25.0
    assert data["currency"] == "USD"


@pytest.mark.asyncio
async def test_export_import_roundtrip(client):
    exported = (await client.get("/api/v1/data/export")).json()
    await client.delete("/api/v1/contacts/1")

    response = await client.post("/api/v1/data/import", json=exported)
    assert response.status_code == 200
    assert response.json()["imported"] == {"contacts": 3, "deals": 4, "activities": 3}
    assert (await client.get("/api/v1/contacts/1")).status_code == 200


@pytest.mark.asyncio
async def test_import_duplicate_ids(client):
    response = await client.post(
        "/api/v1/data/import", json={"contacts": [{"id": 1}, {"id": 1}]}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

    ready = await client.get("/api/v1/health/ready")
    assert ready.json() == {
        "status": "ready",
        "checks": {"contacts": 3, "deals": 4, "activities": 3},
    }


# ── 503 When Not Initialized ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_api_503_when_not_initialized():
    """app.state.services missing -> 503."""
    app = _make_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/contacts")
        assert response.status_code == 503
        assert "not initialized" in response.json()["detail"]

        ready = await client.get("/api/v1/health/ready")
        assert ready.status_code == 503
