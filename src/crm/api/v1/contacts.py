"""REST API endpoints for contacts."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from src.crm.api.deps import get_current_user, get_record_repository, http_error
from src.crm.errors import CRMError
from src.crm.records.schemas import ContactCreate, ContactDetail, ContactRead, ContactUpdate
from src.crm.schemas.auth import UserRead

router = APIRouter(prefix="/contacts", tags=["contacts"])


def _not_found(contact_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Contact not found: {contact_id}",
    )


@router.post("", response_model=ContactRead, status_code=status.HTTP_201_CREATED)
async def create_contact(
    body: ContactCreate,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_record_repository),
) -> ContactRead:
    try:
        return await repo.create_contact(user.id, body)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.get("", response_model=list[ContactRead])
async def list_contacts(
    search: str | None = Query(default=None, description="Match first/last name or email"),
    company_id: str | None = Query(default=None, description="Filter by company ID"),
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_record_repository),
) -> list[ContactRead]:
    """List contacts newest first, each with its company."""
    try:
        return await repo.list_contacts(user.id, search=search, company_id=company_id)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.get("/{contact_id}", response_model=ContactDetail)
async def get_contact(
    contact_id: str,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_record_repository),
) -> ContactDetail:
    """Contact with its deals, activities and notes."""
    try:
        detail = await repo.get_contact_detail(user.id, contact_id)
    except CRMError as exc:
        raise http_error(exc) from exc
    if detail is None:
        raise _not_found(contact_id)
    return detail


@router.patch("/{contact_id}", response_model=ContactRead)
async def update_contact(
    contact_id: str,
    body: ContactUpdate,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_record_repository),
) -> ContactRead:
    try:
        return await repo.update_contact(user.id, contact_id, body)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contact(
    contact_id: str,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_record_repository),
) -> Response:
    try:
        deleted = await repo.delete_contact(user.id, contact_id)
    except CRMError as exc:
        raise http_error(exc) from exc
    if not deleted:
        raise _not_found(contact_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
