"""Authentication API endpoints.

Provides registration, login, token refresh and current user info.
All endpoints except register, login and refresh require a valid JWT.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from src.crm.api.deps import (
    get_current_user,
    get_pipeline_service,
    get_user_repository,
    http_error,
)
from src.crm.core.security import token_pair_for, verify_password, verify_token
from src.crm.errors import EmailTakenError
from src.crm.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    TokenRefreshRequest,
    TokenResponse,
    UserRead,
)
from src.crm.services.user_provisioning import provision_user

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _tokens(user: UserRead) -> TokenResponse:
    access, refresh = token_pair_for(user.id, user.email)
    return TokenResponse(access_token=access, refresh_token=refresh)


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    users: Any = Depends(get_user_repository),
    pipeline: Any = Depends(get_pipeline_service),
) -> TokenResponse:
    """Create an account with the default pipeline and sign it in."""
    try:
        user = await provision_user(
            users, pipeline, body.email, body.password, full_name=body.full_name
        )
    except EmailTakenError as exc:
        raise http_error(exc) from exc
    return _tokens(user)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, users: Any = Depends(get_user_repository)) -> TokenResponse:
    """Authenticate a user and return JWT tokens."""
    user = await users.get_by_email(body.email)

    if user is None or not user.is_active or not user.hashed_password:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not verify_password(body.password, user.hashed_password):
        logger.info("auth.login_failed", user_id=user.id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    return _tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    body: TokenRefreshRequest, users: Any = Depends(get_user_repository)
) -> TokenResponse:
    """Refresh an expired access token using a valid refresh token."""
    payload = verify_token(body.refresh_token, token_type="refresh")

    user = await users.get_by_id(payload["sub"])
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return _tokens(user)


@router.get("/me", response_model=UserRead)
async def get_me(current_user: UserRead = Depends(get_current_user)) -> UserRead:
    """Return the signed-in user."""
    return current_user
