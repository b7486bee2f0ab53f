"""Pydantic schemas for authentication and profile endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from src.crm.schemas.common import FormModel


class LoginRequest(BaseModel):
    """Request schema for user login."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")


class RegisterRequest(BaseModel):
    """Request schema for creating an account."""

    email: EmailStr
    password: str = Field(..., min_length=8, description="At least 8 characters")
    full_name: str = Field(default="", max_length=200)


class TokenResponse(BaseModel):
    """Response schema with access and refresh tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefreshRequest(BaseModel):
    """Request schema to refresh an access token."""

    refresh_token: str = Field(..., description="Valid refresh token")


class UserRead(BaseModel):
    """Public profile of a user."""

    id: str
    email: str
    full_name: str = ""
    avatar_url: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserInDB(UserRead):
    """User plus the stored password hash (never returned by the API)."""

    hashed_password: str | None = None


class ProfileUpdate(FormModel):
    """Editable profile fields."""

    full_name: str | None = Field(default=None, max_length=200)
    avatar_url: str | None = None
