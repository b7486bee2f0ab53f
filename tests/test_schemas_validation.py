"""Validation rules on the request schemas."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.crm.activities.schemas import ActivityCreate, NoteCreate
from src.crm.deals.schemas import DealClose, DealCreate, StageCreate, StageRole, StageUpdate
from src.crm.errors import StageInUseError
from src.crm.records.schemas import CompanyCreate, ContactCreate
from src.crm.schemas.auth import ProfileUpdate, RegisterRequest


class TestBlankOptionalFields:
    def test_blank_email_becomes_none(self):
        contact = ContactCreate(first_name="Ada", last_name="Lovelace", email="")
        assert contact.email is None

    def test_whitespace_website_becomes_none(self):
        company = CompanyCreate(name="Acme", website="   ")
        assert company.website is None

    def test_blank_required_field_still_fails(self):
        with pytest.raises(ValidationError):
            ContactCreate(first_name="", last_name="Lovelace")

    def test_blank_avatar_on_profile(self):
        assert ProfileUpdate(avatar_url="").avatar_url is None


class TestStageCreate:
    def test_flags_follow_role(self):
        won = StageCreate(name="Won", role=StageRole.WON)
        assert (won.is_won, won.is_lost) == (True, False)
        lost = StageCreate(name="Lost", role="lost")
        assert (lost.is_won, lost.is_lost) == (False, True)

    def test_accent_defaults_from_role(self):
        assert StageCreate(name="Pitch", role=StageRole.PROPOSAL).color == "#8b5cf6"

    def test_explicit_color_kept(self):
        assert StageCreate(name="Pitch", role="proposal", color="#123456").color == "#123456"

    def test_flag_contradicting_role(self):
        with pytest.raises(ValidationError):
            StageCreate(name="Won", role=StageRole.LEAD, is_won=True)
        with pytest.raises(ValidationError):
            StageCreate(name="Lost", role=StageRole.LOST, is_lost=False)

    def test_name_is_stripped(self):
        assert StageCreate(name="  Demo  ", role="qualified").name == "Demo"

    def test_bad_color(self):
        with pytest.raises(ValidationError):
            StageUpdate(color="red")

    def test_unknown_role(self):
        with pytest.raises(ValidationError):
            StageCreate(name="Limbo", role="limbo")


class TestDealSchemas:
    def test_value_must_be_non_negative(self):
        with pytest.raises(ValidationError):
            DealCreate(title="D", value=-0.01)

    def test_probability_range(self):
        DealCreate(title="D", probability=0)
        DealCreate(title="D", probability=100)
        with pytest.raises(ValidationError):
            DealCreate(title="D", probability=100.5)

    def test_title_required(self):
        with pytest.raises(ValidationError):
            DealCreate(title="   ")

    def test_close_outcome_enum(self):
        with pytest.raises(ValidationError):
            DealClose(outcome="abandoned")


class TestActivitySchemas:
    def test_activity_type_enum(self):
        with pytest.raises(ValidationError):
            ActivityCreate(type="letter", title="Hello")

    def test_note_needs_target(self):
        with pytest.raises(ValidationError):
            NoteCreate(content="Orphan note")
        assert NoteCreate(content="Ok", company_id="c1").company_id == "c1"


class TestRegisterRequest:
    def test_short_password(self):
        with pytest.raises(ValidationError):
            RegisterRequest(email="a@example.com", password="short")

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            RegisterRequest(email="nope", password="long enough")


class TestStageInUseMessage:
    def test_plural(self):
        message = str(StageInUseError("Negotiation", 3))
        assert message == (
            'Cannot delete "Negotiation": it has 3 deals. '
            "Move or delete those deals first."
        )

    def test_singular(self):
        assert "it has 1 deal." in str(StageInUseError("Lead", 1))
