"""REST API endpoints for pipeline stage settings.

List, create, rename/recolor, reorder and delete stages. Deleting a stage
that still has deals is refused with 409 and a message naming the count.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response, status

from src.crm.api.deps import get_current_user, get_pipeline_service, http_error
from src.crm.core.monitoring import stage_delete_refusals_total
from src.crm.deals.schemas import StageCreate, StageRead, StageReorder, StageUpdate
from src.crm.errors import CRMError, StageInUseError
from src.crm.schemas.auth import UserRead

router = APIRouter(prefix="/stages", tags=["stages"])


@router.get("", response_model=list[StageRead])
async def list_stages(
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> list[StageRead]:
    """Stages in position order."""
    return await pipeline.list_stages(user.id)


@router.post("", response_model=StageRead, status_code=status.HTTP_201_CREATED)
async def create_stage(
    body: StageCreate,
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> StageRead:
    """Append a stage at the end of the pipeline."""
    return await pipeline.create_stage(user.id, body)


@router.patch("/{stage_id}", response_model=StageRead)
async def update_stage(
    stage_id: str,
    body: StageUpdate,
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> StageRead:
    try:
        return await pipeline.update_stage(user.id, stage_id, body)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.post("/reorder", response_model=list[StageRead])
async def reorder_stages(
    body: StageReorder,
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> list[StageRead]:
    """Move one stage to a new index; returns every stage renumbered."""
    try:
        return await pipeline.reorder_stage(user.id, body)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.delete("/{stage_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_stage(
    stage_id: str,
    user: UserRead = Depends(get_current_user),
    pipeline: Any = Depends(get_pipeline_service),
) -> Response:
    try:
        await pipeline.delete_stage(user.id, stage_id)
    except StageInUseError as exc:
        stage_delete_refusals_total.inc()
        raise http_error(exc) from exc
    except CRMError as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
