"""Tests for request logging, Prometheus metrics and the application factory."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from prometheus_client import REGISTRY

from src.crm.main import create_app
from tests.doubles import default_stages, make_deal


@pytest.fixture
def stages(store):
    seeded = default_stages()
    for stage in seeded:
        store.add_stage(stage)
    return {s.name: s for s in seeded}


class TestApplicationFactory:
    @pytest.mark.asyncio
    async def test_health_has_request_id(self):
        app = create_app()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert len(response.headers["X-Request-ID"]) == 36

    @pytest.mark.asyncio
    async def test_metrics_endpoint(self):
        app = create_app()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            await client.get("/api/v1/health")
            response = await client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert "deal_stage_moves_total" in response.text

    @pytest.mark.asyncio
    async def test_services_missing_answers_503(self):
        """Before the lifespan has wired repositories, data routes are unavailable."""
        from src.crm.api.deps import get_current_user
        from src.crm.schemas.auth import UserRead

        app = create_app()
        app.dependency_overrides[get_current_user] = lambda: UserRead(
            id="u1", email="u1@example.com"
        )
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/stages")

        assert response.status_code == 503


class TestPipelineCounters:
    @pytest.mark.asyncio
    async def test_stage_delete_refusal_is_counted(self, client, store, stages):
        store.add_deal(make_deal("D1", stages["Lead"]))
        before = REGISTRY.get_sample_value("stage_delete_refusals_total") or 0.0

        response = await client.delete(f"/api/v1/stages/{stages['Lead'].id}")

        assert response.status_code == 409
        assert REGISTRY.get_sample_value("stage_delete_refusals_total") == before + 1

    @pytest.mark.asyncio
    async def test_stage_moves_counted_by_outcome(self, client, store, stages):
        deal = store.add_deal(make_deal("D1", stages["Lead"]))

        def count(outcome: str) -> float:
            return (
                REGISTRY.get_sample_value("deal_stage_moves_total", {"outcome": outcome})
                or 0.0
            )

        moved_before, rejected_before = count("moved"), count("rejected")

        await client.patch(
            f"/api/v1/deals/{deal.id}/stage", json={"stage_id": stages["Won"].id}
        )
        await client.patch(f"/api/v1/deals/{deal.id}/stage", json={"stage_id": "missing"})

        assert count("moved") == moved_before + 1
        assert count("rejected") == rejected_before + 1
