"""Profile endpoints: read and edit the signed-in user, or delete the account."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, status

from src.crm.api.deps import get_current_user, get_user_repository
from src.crm.schemas.auth import ProfileUpdate, UserRead

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=UserRead)
async def get_profile(user: UserRead = Depends(get_current_user)) -> UserRead:
    return user


@router.patch("", response_model=UserRead)
async def update_profile(
    body: ProfileUpdate,
    user: UserRead = Depends(get_current_user),
    users: Any = Depends(get_user_repository),
) -> UserRead:
    """Update full name and/or avatar."""
    return await users.update_profile(user.id, body)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    user: UserRead = Depends(get_current_user),
    users: Any = Depends(get_user_repository),
) -> Response:
    """Delete the account and every record it owns."""
    if not await users.delete(user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    logger.info("users.account_deleted", user_id=user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
