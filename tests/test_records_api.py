"""Integration tests for the companies and contacts API endpoints.

Uses InMemoryRecordRepository on app.state (see conftest).
"""

from __future__ import annotations

import uuid

import pytest


async def _create_company(client, **fields) -> dict:
    payload = {"name": "Acme Corp", **fields}
    response = await client.post("/api/v1/companies", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def _create_contact(client, **fields) -> dict:
    payload = {"first_name": "Ada", "last_name": "Lovelace", **fields}
    response = await client.post("/api/v1/contacts", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


# ── Companies ───────────────────────────────────────────────────────────────


class TestCompanies:
    @pytest.mark.asyncio
    async def test_create_company(self, client):
        data = await _create_company(
            client, industry="Manufacturing", size="51-200", website="https://acme.example"
        )
        assert data["name"] == "Acme Corp"
        assert data["size"] == "51-200"
        assert data["website"].startswith("https://acme.example")

    @pytest.mark.asyncio
    async def test_blank_website_is_accepted(self, client):
        data = await _create_company(client, website="", domain="")
        assert data["website"] is None
        assert data["domain"] is None

    @pytest.mark.asyncio
    async def test_invalid_website_rejected(self, client):
        response = await client.post(
            "/api/v1/companies", json={"name": "Acme", "website": "not a url"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_invalid_size_rejected(self, client):
        response = await client.post(
            "/api/v1/companies", json={"name": "Acme", "size": "huge"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_name_required(self, client):
        response = await client.post("/api/v1/companies", json={"name": "   "})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_search_matches_name_or_industry(self, client):
        await _create_company(client, name="Acme Corp", industry="Retail")
        await _create_company(client, name="Globex", industry="Energy")

        response = await client.get("/api/v1/companies", params={"search": "energ"})
        assert response.status_code == 200
        assert [c["name"] for c in response.json()] == ["Globex"]

    @pytest.mark.asyncio
    async def test_company_detail_lists_contacts(self, client):
        company = await _create_company(client)
        await _create_contact(client, company_id=company["id"])

        response = await client.get(f"/api/v1/companies/{company['id']}")
        assert response.status_code == 200
        data = response.json()
        assert data["company"]["id"] == company["id"]
        assert len(data["contacts"]) == 1

    @pytest.mark.asyncio
    async def test_update_company(self, client):
        company = await _create_company(client)
        response = await client.patch(
            f"/api/v1/companies/{company['id']}", json={"industry": "Logistics"}
        )
        assert response.status_code == 200
        assert response.json()["industry"] == "Logistics"
        assert response.json()["name"] == "Acme Corp"

    @pytest.mark.asyncio
    async def test_delete_company_keeps_contact(self, client, record_repo):
        company = await _create_company(client)
        contact = await _create_contact(client, company_id=company["id"])

        response = await client.delete(f"/api/v1/companies/{company['id']}")
        assert response.status_code == 204
        assert record_repo.contacts[contact["id"]].company_id is None

    @pytest.mark.asyncio
    async def test_missing_company(self, client):
        missing = uuid.uuid4()
        assert (await client.get(f"/api/v1/companies/{missing}")).status_code == 404
        assert (await client.delete(f"/api/v1/companies/{missing}")).status_code == 404


# ── Contacts ────────────────────────────────────────────────────────────────


class TestContacts:
    @pytest.mark.asyncio
    async def test_create_contact_with_company_embed(self, client):
        company = await _create_company(client)
        data = await _create_contact(
            client, email="ada@example.com", company_id=company["id"]
        )
        assert data["status"] == "active"
        assert data["company"] == {"id": company["id"], "name": "Acme Corp"}

    @pytest.mark.asyncio
    async def test_blank_email_is_null(self, client):
        data = await _create_contact(client, email="", phone="")
        assert data["email"] is None
        assert data["phone"] is None

    @pytest.mark.asyncio
    async def test_invalid_email_rejected(self, client):
        response = await client.post(
            "/api/v1/contacts",
            json={"first_name": "Ada", "last_name": "L", "email": "not-an-email"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_invalid_status_rejected(self, client):
        response = await client.post(
            "/api/v1/contacts",
            json={"first_name": "Ada", "last_name": "L", "status": "deleted"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_company_is_not_found(self, client):
        response = await client.post(
            "/api/v1/contacts",
            json={"first_name": "Ada", "last_name": "L", "company_id": str(uuid.uuid4())},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_search_and_company_filter(self, client):
        company = await _create_company(client)
        await _create_contact(client, first_name="Grace", last_name="Hopper")
        await _create_contact(
            client, first_name="Alan", last_name="Turing", company_id=company["id"]
        )

        by_name = await client.get("/api/v1/contacts", params={"search": "hop"})
        assert [c["last_name"] for c in by_name.json()] == ["Hopper"]

        by_company = await client.get(
            "/api/v1/contacts", params={"company_id": company["id"]}
        )
        assert [c["last_name"] for c in by_company.json()] == ["Turing"]

    @pytest.mark.asyncio
    async def test_contact_detail(self, client):
        contact = await _create_contact(client)
        response = await client.get(f"/api/v1/contacts/{contact['id']}")
        assert response.status_code == 200
        data = response.json()
        assert data["contact"]["first_name"] == "Ada"
        assert data["deals"] == []

    @pytest.mark.asyncio
    async def test_update_contact_status(self, client):
        contact = await _create_contact(client)
        response = await client.patch(
            f"/api/v1/contacts/{contact['id']}", json={"status": "archived"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "archived"

    @pytest.mark.asyncio
    async def test_delete_contact(self, client):
        contact = await _create_contact(client)
        assert (await client.delete(f"/api/v1/contacts/{contact['id']}")).status_code == 204
        assert (await client.get(f"/api/v1/contacts/{contact['id']}")).status_code == 404
