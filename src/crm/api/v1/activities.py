"""REST API endpoints for activities, tasks and notes."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from src.crm.activities.schemas import (
    ActivityCompletion,
    ActivityCreate,
    ActivityFilter,
    ActivityRead,
    ActivityType,
    ActivityUpdate,
    NoteCreate,
    NoteRead,
    TaskGroups,
)
from src.crm.activities.tasks import categorize_tasks
from src.crm.api.deps import get_activity_repository, get_current_user, http_error
from src.crm.errors import CRMError
from src.crm.schemas.auth import UserRead

router = APIRouter(tags=["activities"])


# ── Activities ──────────────────────────────────────────────────────────────


@router.post("/activities", response_model=ActivityRead, status_code=status.HTTP_201_CREATED)
async def create_activity(
    body: ActivityCreate,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_activity_repository),
) -> ActivityRead:
    try:
        return await repo.create_activity(user.id, body)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.get("/activities", response_model=list[ActivityRead])
async def list_activities(
    type: ActivityType | None = Query(default=None, description="Filter by activity type"),
    contact_id: str | None = Query(default=None),
    company_id: str | None = Query(default=None),
    deal_id: str | None = Query(default=None),
    created_from: datetime | None = Query(default=None),
    created_to: datetime | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=500),
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_activity_repository),
) -> list[ActivityRead]:
    """Activity timeline, newest first."""
    filters = ActivityFilter(
        type=type,
        contact_id=contact_id,
        company_id=company_id,
        deal_id=deal_id,
        created_from=created_from,
        created_to=created_to,
        limit=limit,
    )
    try:
        return await repo.list_activities(user.id, filters)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.get("/activities/tasks", response_model=list[ActivityRead])
async def list_tasks(
    include_completed: bool = Query(default=True),
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_activity_repository),
) -> list[ActivityRead]:
    """Tasks by due date, undated last."""
    return await repo.list_tasks(user.id, include_completed=include_completed)


@router.get("/activities/tasks/grouped", response_model=TaskGroups)
async def grouped_tasks(
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_activity_repository),
) -> TaskGroups:
    """Tasks split into overdue, today, upcoming and completed."""
    return categorize_tasks(await repo.list_tasks(user.id))


@router.get("/activities/{activity_id}", response_model=ActivityRead)
async def get_activity(
    activity_id: str,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_activity_repository),
) -> ActivityRead:
    try:
        activity = await repo.get_activity(user.id, activity_id)
    except CRMError as exc:
        raise http_error(exc) from exc
    if activity is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Activity not found: {activity_id}",
        )
    return activity


@router.patch("/activities/{activity_id}", response_model=ActivityRead)
async def update_activity(
    activity_id: str,
    body: ActivityUpdate,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_activity_repository),
) -> ActivityRead:
    try:
        return await repo.update_activity(user.id, activity_id, body)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.patch("/activities/{activity_id}/completion", response_model=ActivityRead)
async def set_completion(
    activity_id: str,
    body: ActivityCompletion,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_activity_repository),
) -> ActivityRead:
    """Mark a task done or reopen it."""
    try:
        return await repo.set_completion(user.id, activity_id, body.is_completed)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.delete("/activities/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activity(
    activity_id: str,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_activity_repository),
) -> Response:
    try:
        deleted = await repo.delete_activity(user.id, activity_id)
    except CRMError as exc:
        raise http_error(exc) from exc
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Activity not found: {activity_id}",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Notes ───────────────────────────────────────────────────────────────────


@router.post("/notes", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def create_note(
    body: NoteCreate,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_activity_repository),
) -> NoteRead:
    try:
        return await repo.create_note(user.id, body)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.get("/notes", response_model=list[NoteRead])
async def list_notes(
    contact_id: str | None = Query(default=None),
    company_id: str | None = Query(default=None),
    deal_id: str | None = Query(default=None),
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_activity_repository),
) -> list[NoteRead]:
    """Notes newest first for the given contact, company and/or deal."""
    try:
        return await repo.list_notes(
            user.id, contact_id=contact_id, company_id=company_id, deal_id=deal_id
        )
    except CRMError as exc:
        raise http_error(exc) from exc


@router.delete("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: str,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_activity_repository),
) -> Response:
    try:
        deleted = await repo.delete_note(user.id, note_id)
    except CRMError as exc:
        raise http_error(exc) from exc
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Note not found: {note_id}",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
