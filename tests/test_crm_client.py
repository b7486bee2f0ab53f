"""Tests for CRMClient, the board's HTTP client.

httpx.AsyncClient methods are patched with AsyncMocks returning canned
httpx.Response objects.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.crm.board.client import CRMClient
from src.crm.deals.schemas import DealFilter
from src.crm.errors import PersistenceError
from tests.doubles import default_stages, make_deal

BASE = "https://crm.test"


@pytest.fixture
def client():
    return CRMClient(access_token="token-123", base_url=BASE, timeout=5.0)


@pytest.fixture
def stages():
    return {s.name: s for s in default_stages()}


class TestCRMClientReads:
    @pytest.mark.asyncio
    async def test_list_stages(self, client, stages):
        mock_response = httpx.Response(
            200,
            json=[s.model_dump(mode="json") for s in stages.values()],
            request=httpx.Request("GET", f"{BASE}/api/v1/stages"),
        )
        with patch(
            "httpx.AsyncClient.get", new_callable=AsyncMock, return_value=mock_response
        ) as mock_get:
            result = await client.list_stages()

        assert [s.name for s in result][:2] == ["Lead", "Qualified"]
        assert mock_get.call_args.args[0] == f"{BASE}/api/v1/stages"

    @pytest.mark.asyncio
    async def test_list_deals_passes_filters(self, client, stages):
        deal = make_deal("D1", stages["Lead"], 10.0)
        mock_response = httpx.Response(
            200,
            json=[deal.model_dump(mode="json")],
            request=httpx.Request("GET", f"{BASE}/api/v1/deals"),
        )
        with patch(
            "httpx.AsyncClient.get", new_callable=AsyncMock, return_value=mock_response
        ) as mock_get:
            result = await client.list_deals(DealFilter(stage_id=stages["Lead"].id))

        assert result[0].id == deal.id
        assert result[0].stage.name == "Lead"
        assert mock_get.call_args.kwargs["params"] == {"stage_id": stages["Lead"].id}

    @pytest.mark.asyncio
    async def test_get_pipeline(self, client, stages):
        payload = {
            "columns": [
                {
                    "stage": stages["Lead"].model_dump(mode="json"),
                    "deals": [],
                    "count": 0,
                    "total_value": 0.0,
                }
            ],
            "total_value": 0.0,
        }
        mock_response = httpx.Response(
            200,
            json=payload,
            request=httpx.Request("GET", f"{BASE}/api/v1/deals/pipeline"),
        )
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=mock_response):
            view = await client.get_pipeline()

        assert view.columns[0].stage.name == "Lead"


class TestCRMClientMoveDeal:
    @pytest.mark.asyncio
    async def test_move_deal_patches_stage(self, client, stages):
        moved = make_deal("D1", stages["Proposal"], deal_id="d1")
        mock_response = httpx.Response(
            200,
            json=moved.model_dump(mode="json"),
            request=httpx.Request("PATCH", f"{BASE}/api/v1/deals/d1/stage"),
        )
        with patch(
            "httpx.AsyncClient.patch", new_callable=AsyncMock, return_value=mock_response
        ) as mock_patch:
            result = await client.move_deal("d1", stages["Proposal"].id)

        assert result.stage_id == stages["Proposal"].id
        assert mock_patch.call_args.args[0] == f"{BASE}/api/v1/deals/d1/stage"
        assert mock_patch.call_args.kwargs["json"] == {"stage_id": stages["Proposal"].id}
        mock_patch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_http_error_becomes_persistence_error(self, client):
        error_response = httpx.Response(
            404,
            json={"detail": "Stage not found: s9"},
            request=httpx.Request("PATCH", f"{BASE}/api/v1/deals/d1/stage"),
        )
        with patch(
            "httpx.AsyncClient.patch", new_callable=AsyncMock, return_value=error_response
        ) as mock_patch:
            with pytest.raises(PersistenceError) as exc_info:
                await client.move_deal("d1", "s9")

        assert exc_info.value.status_code == 404
        assert "Stage not found: s9" in str(exc_info.value)
        assert mock_patch.await_count == 1

    @pytest.mark.asyncio
    async def test_transport_error_becomes_persistence_error(self, client):
        with patch(
            "httpx.AsyncClient.patch",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("connection refused"),
        ) as mock_patch:
            with pytest.raises(PersistenceError) as exc_info:
                await client.move_deal("d1", "s1")

        assert exc_info.value.status_code is None
        assert mock_patch.await_count == 1
