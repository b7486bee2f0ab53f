"""Pydantic schemas for contacts and companies.

Validation mirrors the CRM forms: names are required, email and website
must be well formed when present, size and status are enum-constrained.
Detail schemas bundle a record with its related deals, activities and notes.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, EmailStr, Field, field_validator

from src.crm.activities.schemas import ActivityRead, NoteRead
from src.crm.deals.schemas import DealRead
from src.crm.schemas.common import Address, CompanyRef, FormModel


class CompanySize(str, Enum):
    """Headcount band."""

    XS = "1-10"
    S = "11-50"
    M = "51-200"
    L = "201-500"
    XL = "500+"


class ContactStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class SocialLinks(BaseModel):
    """Social profile links; unknown networks are kept as-is."""

    model_config = ConfigDict(extra="allow")

    linkedin: str | None = None
    twitter: str | None = None


# ── Company Schemas ─────────────────────────────────────────────────────────


class CompanyCreate(FormModel):
    """Schema for creating a company."""

    name: str = Field(min_length=1, max_length=300)
    domain: str | None = None
    industry: str | None = None
    size: CompanySize | None = None
    phone: str | None = None
    website: AnyHttpUrl | None = None
    address: Address | None = None
    logo_url: str | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Company name is required")
        return v


class CompanyUpdate(FormModel):
    """Partial company update."""

    name: str | None = Field(default=None, min_length=1, max_length=300)
    domain: str | None = None
    industry: str | None = None
    size: CompanySize | None = None
    phone: str | None = None
    website: AnyHttpUrl | None = None
    address: Address | None = None
    logo_url: str | None = None


class CompanyRead(BaseModel):
    """Schema for reading a company."""

    id: str
    user_id: str
    name: str
    domain: str | None = None
    industry: str | None = None
    size: CompanySize | None = None
    phone: str | None = None
    website: str | None = None
    address: Address | None = None
    logo_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Contact Schemas ─────────────────────────────────────────────────────────


class ContactCreate(FormModel):
    """Schema for creating a contact."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = None
    company_id: str | None = None
    position: str | None = None
    address: Address | None = None
    social_links: SocialLinks | None = None
    notes: str | None = None
    avatar_url: str | None = None
    status: ContactStatus = ContactStatus.ACTIVE

    @field_validator("first_name", "last_name")
    @classmethod
    def _strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class ContactUpdate(FormModel):
    """Partial contact update."""

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = None
    company_id: str | None = None
    position: str | None = None
    address: Address | None = None
    social_links: SocialLinks | None = None
    notes: str | None = None
    avatar_url: str | None = None
    status: ContactStatus | None = None


class ContactRead(BaseModel):
    """Schema for reading a contact with its company embed."""

    id: str
    user_id: str
    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    company_id: str | None = None
    position: str | None = None
    address: Address | None = None
    social_links: SocialLinks | None = None
    notes: str | None = None
    avatar_url: str | None = None
    status: ContactStatus = ContactStatus.ACTIVE
    created_at: datetime | None = None
    updated_at: datetime | None = None
    company: CompanyRef | None = None


# ── Detail Views ────────────────────────────────────────────────────────────


class CompanyDetail(BaseModel):
    """Company with everything that references it."""

    company: CompanyRead
    contacts: list[ContactRead] = Field(default_factory=list)
    deals: list[DealRead] = Field(default_factory=list)
    activities: list[ActivityRead] = Field(default_factory=list)
    notes: list[NoteRead] = Field(default_factory=list)


class ContactDetail(BaseModel):
    """Contact with its deals, activities and notes."""

    contact: ContactRead
    deals: list[DealRead] = Field(default_factory=list)
    activities: list[ActivityRead] = Field(default_factory=list)
    notes: list[NoteRead] = Field(default_factory=list)
