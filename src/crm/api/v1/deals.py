"""REST API endpoints for deals.

CRUD, the stage move used by the board (PATCH /deals/{id}/stage), won/lost
close, and the pipeline view grouping deals by stage. All endpoints
require authentication; records of other users answer 404.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Response, status

from src.crm.api.deps import get_current_user, get_pipeline_service, http_error
from src.crm.core.monitoring import deal_stage_moves_total
from src.crm.deals.schemas import (
    DealClose,
    DealCreate,
    DealFilter,
    DealMove,
    DealRead,
    DealUpdate,
    PipelineView,
)
from src.crm.errors import CRMError
from src.crm.schemas.auth import UserRead

router = APIRouter(prefix="/deals", tags=["deals"])


@router.get("/pipeline", response_model=PipelineView)
async def get_pipeline(
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> PipelineView:
    """Deals grouped by stage, stages in position order."""
    return await pipeline.pipeline_view(user.id)


@router.post("", response_model=DealRead, status_code=status.HTTP_201_CREATED)
async def create_deal(
    body: DealCreate,
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> DealRead:
    """Create a deal; without stage_id it lands in the first open stage."""
    try:
        return await pipeline.create_deal(user.id, body)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.get("", response_model=list[DealRead])
async def list_deals(
    stage_id: str | None = Query(default=None, description="Filter by stage ID"),
    contact_id: str | None = Query(default=None, description="Filter by contact ID"),
    company_id: str | None = Query(default=None, description="Filter by company ID"),
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> list[DealRead]:
    """List deals newest first with optional filters."""
    filters = DealFilter(stage_id=stage_id, contact_id=contact_id, company_id=company_id)
    try:
        return await pipeline.list_deals(user.id, filters)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.get("/{deal_id}", response_model=DealRead)
async def get_deal(
    deal_id: str,
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> DealRead:
    try:
        return await pipeline.get_deal(user.id, deal_id)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.patch("/{deal_id}", response_model=DealRead)
async def update_deal(
    deal_id: str,
    body: DealUpdate,
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> DealRead:
    """Partial update; only fields present in the body are written."""
    try:
        return await pipeline.update_deal(user.id, deal_id, body)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.patch("/{deal_id}/stage", response_model=DealRead)
async def move_deal(
    deal_id: str,
    body: DealMove,
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> DealRead:
    """Persist a board drag: new stage_id plus updated_at."""
    try:
        deal = await pipeline.move_deal(user.id, deal_id, body.stage_id)
    except CRMError as exc:
        deal_stage_moves_total.labels(outcome="rejected").inc()
        raise http_error(exc) from exc
    deal_stage_moves_total.labels(outcome="moved").inc()
    return deal


@router.post("/{deal_id}/close", response_model=DealRead)
async def close_deal(
    deal_id: str,
    body: DealClose,
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> DealRead:
    """Close as won or lost; the reason is kept only for losses."""
    try:
        return await pipeline.close_deal(user.id, deal_id, body)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.delete("/{deal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deal(
    deal_id: str,
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> Response:
    try:
        await pipeline.delete_deal(user.id, deal_id)
    except CRMError as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
