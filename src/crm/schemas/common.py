"""Shared schema building blocks: blank-string handling and embed references."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, model_validator


class FormModel(BaseModel):
    """Base for request payloads submitted from forms.

    Optional fields submitted as empty strings are treated as absent, so
    "" for an optional email or URL never fails format validation. Required
    fields keep the empty string and fail their own min_length check.
    """

    @model_validator(mode="before")
    @classmethod
    def _blank_optional_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = dict(data)
        for name, field in cls.model_fields.items():
            if field.is_required():
                continue
            if isinstance(cleaned.get(name), str) and cleaned[name].strip() == "":
                cleaned[name] = None
        return cleaned


class Address(BaseModel):
    """Postal address stored as JSON on companies and contacts."""

    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    country: str | None = None


# ── Embed references ────────────────────────────────────────────────────────


class CompanyRef(BaseModel):
    """Lightweight company embed."""

    id: str
    name: str


class ContactRef(BaseModel):
    """Lightweight contact embed."""

    id: str
    first_name: str
    last_name: str
    email: str | None = None
    avatar_url: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class DealRef(BaseModel):
    """Lightweight deal embed."""

    id: str
    title: str
