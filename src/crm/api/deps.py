"""FastAPI dependency injection for authentication and app-state services.

These dependencies are used in endpoint function signatures to inject the
authenticated user and the repositories/services created in the
application lifespan.
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, HTTPException, Request, status

from src.crm.core.security import verify_token
from src.crm.errors import (
    CRMError,
    NotFoundError,
    PersistenceError,
)
from src.crm.schemas.auth import UserRead


def _from_state(request: Request, name: str, label: str) -> Any:
    """Retrieve a service from app.state, 503 if not available."""
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return service


def get_user_repository(request: Request) -> Any:
    return _from_state(request, "user_repository", "User accounts")


def get_pipeline_service(request: Request) -> Any:
    return _from_state(request, "pipeline_service", "Pipeline")


def get_record_repository(request: Request) -> Any:
    return _from_state(request, "record_repository", "Contacts and companies")


def get_activity_repository(request: Request) -> Any:
    return _from_state(request, "activity_repository", "Activities")


def get_dashboard_service(request: Request) -> Any:
    return _from_state(request, "dashboard_service", "Dashboard")


async def get_current_user(
    request: Request,
    users: Any = Depends(get_user_repository),
) -> UserRead:
    """Extract and validate the current user from the Bearer JWT.

    Raises:
        HTTPException(401): If no valid token is provided or the user is
            missing or inactive.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(auth_header[7:], token_type="access")
    try:
        user = await users.get_by_id(payload["sub"])
    except NotFoundError:
        user = None
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return UserRead.model_validate(user.model_dump())


# ── Domain error translation ────────────────────────────────────────────────


def http_error(exc: CRMError) -> HTTPException:
    """Map a domain error to the HTTPException the API returns for it."""
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, PersistenceError):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_409_CONFLICT
    return HTTPException(status_code=code, detail=str(exc))

