"""REST API endpoints for companies."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from src.crm.api.deps import get_current_user, get_record_repository, http_error
from src.crm.errors import CRMError
from src.crm.records.schemas import CompanyCreate, CompanyDetail, CompanyRead, CompanyUpdate
from src.crm.schemas.auth import UserRead

router = APIRouter(prefix="/companies", tags=["companies"])


def _not_found(company_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Company not found: {company_id}",
    )


@router.post("", response_model=CompanyRead, status_code=status.HTTP_201_CREATED)
async def create_company(
    body: CompanyCreate,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_record_repository),
) -> CompanyRead:
    return await repo.create_company(user.id, body)


@router.get("", response_model=list[CompanyRead])
async def list_companies(
    search: str | None = Query(default=None, description="Match name or industry"),
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_record_repository),
) -> list[CompanyRead]:
    """List companies newest first."""
    return await repo.list_companies(user.id, search=search)


@router.get("/{company_id}", response_model=CompanyDetail)
async def get_company(
    company_id: str,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_record_repository),
) -> CompanyDetail:
    """Company with its contacts, deals, activities and notes."""
    try:
        detail = await repo.get_company_detail(user.id, company_id)
    except CRMError as exc:
        raise http_error(exc) from exc
    if detail is None:
        raise _not_found(company_id)
    return detail


@router.patch("/{company_id}", response_model=CompanyRead)
async def update_company(
    company_id: str,
    body: CompanyUpdate,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_record_repository),
) -> CompanyRead:
    try:
        return await repo.update_company(user.id, company_id, body)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.delete("/{company_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_company(
    company_id: str,
    user: UserRead = Depends(get_current_user),
    repo: Any = Depends(get_record_repository),
) -> Response:
    """Delete a company; its contacts and deals keep existing unlinked."""
    try:
        deleted = await repo.delete_company(user.id, company_id)
    except CRMError as exc:
        raise http_error(exc) from exc
    if not deleted:
        raise _not_found(company_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
