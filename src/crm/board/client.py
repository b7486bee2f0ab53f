"""Async HTTP client for the CRM API, used by the pipeline board.

Provides CRMClient with the reads the board needs (stages, deals, pipeline
view) and the one write it makes (stage move). Every failure, transport
or non-2xx, is raised as PersistenceError. There is deliberately no retry:
a failed move is rolled back by the committer and the user tries again.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.crm.config import get_settings
from src.crm.deals.schemas import DealFilter, DealRead, PipelineView, StageRead
from src.crm.errors import PersistenceError

logger = structlog.get_logger(__name__)

API_PREFIX = "/api/v1"


class CRMClient:
    """Async client for the CRM REST API.

    Args:
        access_token: Bearer token of the signed-in user.
        base_url: API root; defaults to settings.CRM_API_URL.
        timeout: Per-request timeout in seconds; defaults to
            settings.CRM_CLIENT_TIMEOUT.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.CRM_API_URL).rstrip("/") + API_PREFIX
        self._timeout = timeout if timeout is not None else settings.CRM_CLIENT_TIMEOUT
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client with auth headers and timeout."""
        return httpx.AsyncClient(headers=self._headers, timeout=self._timeout)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with self._client() as client:
                if method == "GET":
                    response = await client.get(url, params=params)
                else:
                    response = await client.patch(url, json=json)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            detail: Any = exc.response.text
            try:
                detail = exc.response.json().get("detail", detail)
            except ValueError:
                pass
            logger.warning(
                "crm_client.request_failed",
                method=method,
                path=path,
                status_code=status_code,
            )
            raise PersistenceError(
                f"{method} {path} failed with {status_code}: {detail}",
                status_code=status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "crm_client.transport_error", method=method, path=path, error=str(exc)
            )
            raise PersistenceError(f"{method} {path} failed: {exc}") from exc

    async def list_stages(self) -> list[StageRead]:
        data = await self._request("GET", "/stages")
        return [StageRead.model_validate(item) for item in data]

    async def list_deals(self, filters: DealFilter | None = None) -> list[DealRead]:
        params = filters.model_dump(exclude_none=True) if filters else None
        data = await self._request("GET", "/deals", params=params)
        return [DealRead.model_validate(item) for item in data]

    async def get_pipeline(self) -> PipelineView:
        data = await self._request("GET", "/deals/pipeline")
        return PipelineView.model_validate(data)

    async def move_deal(self, deal_id: str, stage_id: str) -> DealRead:
        """PATCH /deals/{deal_id}/stage. The server stamps updated_at."""
        data = await self._request(
            "PATCH", f"/deals/{deal_id}/stage", json={"stage_id": stage_id}
        )
        logger.debug("crm_client.deal_moved", deal_id=deal_id, stage_id=stage_id)
        return DealRead.model_validate(data)
