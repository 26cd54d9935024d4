"""
Tests for lead submission, self-edit and admin review
"""

from datetime import datetime, timedelta, UTC
from decimal import Decimal
from types import SimpleNamespace

import pytest

from config.payout_config import PROGRAMS
from src.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.database.crud import create_user
from src.services.lead_service import LeadService
from src.utils.validators import normalize_website


PROGRAM = PROGRAMS[1]


# ============================================================================
# VALIDATORS
# ============================================================================


@pytest.mark.parametrize(
    "value, expected",
    [
        ("example.com", "https://example.com"),
        ("  www.example.com ", "https://www.example.com"),
        ("http://example.com", "http://example.com"),
        ("https://example.com/path", "https://example.com/path"),
        ("", None),
        (None, None),
    ],
)
def test_normalize_website(value, expected):
    assert normalize_website(value) == expected


@pytest.mark.parametrize(
    "email",
    ["jane@example.com", "jane.doe+lead@sub.example.co"],
)
def test_validate_contact_accepts_email(email):
    fields = LeadService.validate_contact("Jane", email, PROGRAM)

    assert fields["email"] == email


@pytest.mark.parametrize(
    "email",
    [
        "jane@example",
        "jane example@example.com",
        "@example.com",
        "a@b..com",
        "x@-bad-.com",
        "jane@example.c!m",
    ],
)
def test_validate_contact_rejects_malformed_email(email):
    with pytest.raises(ValidationError, match="valid email"):
        LeadService.validate_contact("Jane", email, PROGRAM)


# ============================================================================
# SUBMISSION
# ============================================================================


@pytest.mark.asyncio
async def test_submit_lead(db_session, affiliate):
    lead = await LeadService.submit_lead(
        db_session,
        affiliate,
        full_name="  Jane Doe ",
        email="jane@example.com",
        program=PROGRAM,
        website="janedoe.com",
        phone="",
    )

    assert lead.affiliate_id == affiliate.id
    assert lead.full_name == "Jane Doe"
    assert lead.website == "https://janedoe.com"
    assert lead.phone is None
    assert lead.status == "pending"
    assert lead.paid is False
    assert lead.call_requested is False
    assert lead.price is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields, message",
    [
        ({"full_name": "", "email": "jane@example.com", "program": PROGRAM}, "Full name"),
        ({"full_name": "Jane", "email": None, "program": PROGRAM}, "Email is required"),
        ({"full_name": "Jane", "email": "jane@", "program": PROGRAM}, "valid email"),
        ({"full_name": "Jane", "email": "jane@example.com", "program": "Other"}, "Program"),
    ],
)
async def test_submit_lead_validation(db_session, affiliate, fields, message):
    with pytest.raises(ValidationError, match=message):
        await LeadService.submit_lead(db_session, affiliate, **fields)


# ============================================================================
# SELF-EDIT
# ============================================================================


def test_can_edit_window():
    now = datetime.now(UTC)

    fresh = SimpleNamespace(status="pending", created_at=now - timedelta(minutes=5))
    stale = SimpleNamespace(status="pending", created_at=now - timedelta(minutes=31))
    reviewed = SimpleNamespace(status="approved", created_at=now)
    naive = SimpleNamespace(status="pending", created_at=(now - timedelta(minutes=1)).replace(tzinfo=None))

    assert LeadService.can_edit(fresh, now=now)
    assert not LeadService.can_edit(stale, now=now)
    assert not LeadService.can_edit(reviewed, now=now)
    assert LeadService.can_edit(naive, now=now)


@pytest.mark.asyncio
async def test_edit_own_lead_within_window(db_session, affiliate):
    lead = await LeadService.submit_lead(
        db_session, affiliate, full_name="Jane", email="jane@example.com", program=PROGRAM
    )

    edited = await LeadService.edit_own_lead(
        db_session,
        affiliate,
        lead.id,
        full_name="Jane Roe",
        email="roe@example.com",
        program=PROGRAMS[2],
        lead_note="Prefers mornings",
    )

    assert edited.full_name == "Jane Roe"
    assert edited.email == "roe@example.com"
    assert edited.program == PROGRAMS[2]
    assert edited.lead_note == "Prefers mornings"


@pytest.mark.asyncio
async def test_edit_after_window_is_rejected(db_session, affiliate, lead_factory):
    # lead_factory creates leads an hour in the past
    lead = await lead_factory(affiliate, status="pending")

    with pytest.raises(ValidationError, match="30 minutes"):
        await LeadService.edit_own_lead(
            db_session, affiliate, lead.id, full_name="X", email="x@example.com", program=PROGRAM
        )


@pytest.mark.asyncio
async def test_edit_someone_elses_lead(db_session, affiliate):
    other = await create_user(db_session, email="other@example.com")
    lead = await LeadService.submit_lead(
        db_session, other, full_name="Jane", email="jane@example.com", program=PROGRAM
    )

    with pytest.raises(PermissionDeniedError):
        await LeadService.edit_own_lead(
            db_session, affiliate, lead.id, full_name="X", email="x@example.com", program=PROGRAM
        )
    with pytest.raises(NotFoundError):
        await LeadService.get_own_lead(db_session, affiliate, 9999)


# ============================================================================
# ADMIN REVIEW
# ============================================================================


@pytest.mark.asyncio
async def test_approve_with_price(db_session, affiliate, lead_factory):
    lead = await lead_factory(affiliate, status="pending")

    reviewed = await LeadService.review_lead(
        db_session, lead.id, status="approved", price="150.5", admin_note="Good fit"
    )

    assert reviewed.status == "approved"
    assert reviewed.price == Decimal("150.50")
    assert reviewed.admin_note == "Good fit"


@pytest.mark.asyncio
async def test_status_is_final_once_reviewed(db_session, affiliate, lead_factory):
    lead = await lead_factory(affiliate, status="rejected")

    with pytest.raises(ValidationError, match="already rejected"):
        await LeadService.review_lead(db_session, lead.id, status="approved")

    # Re-sending the same status with a note is fine
    same = await LeadService.review_lead(db_session, lead.id, status="rejected", admin_note="Spam")
    assert same.admin_note == "Spam"


@pytest.mark.asyncio
async def test_price_rules(db_session, affiliate, lead_factory):
    pending = await lead_factory(affiliate, status="pending")
    paid = await lead_factory(affiliate, status="approved", price=100, paid=True)

    with pytest.raises(ValidationError, match="approved lead"):
        await LeadService.review_lead(db_session, pending.id, price=50)
    with pytest.raises(ValidationError, match="non-negative"):
        await LeadService.review_lead(db_session, pending.id, status="approved", price=-1)
    with pytest.raises(ValidationError, match="Invalid price"):
        await LeadService.review_lead(db_session, pending.id, status="approved", price="abc")
    with pytest.raises(ValidationError, match="paid out"):
        await LeadService.review_lead(db_session, paid.id, price=120)

    # Unchanged price on a paid lead is accepted
    unchanged = await LeadService.review_lead(db_session, paid.id, price=100, admin_note="ok")
    assert unchanged.price == Decimal("100.00")


@pytest.mark.asyncio
async def test_invalid_status(db_session, affiliate, lead_factory):
    lead = await lead_factory(affiliate, status="pending")

    with pytest.raises(ValidationError, match="Invalid status"):
        await LeadService.review_lead(db_session, lead.id, status="paid")


@pytest.mark.asyncio
async def test_request_call(db_session, affiliate, lead_factory):
    lead = await lead_factory(affiliate, status="pending")

    updated = await LeadService.request_call(db_session, lead.id, "https://meet.example.com/abc")

    assert updated.call_requested is True
    assert updated.call_meeting_link == "https://meet.example.com/abc"

    with pytest.raises(ValidationError):
        await LeadService.request_call(db_session, lead.id, "  ")
    with pytest.raises(NotFoundError):
        await LeadService.request_call(db_session, 9999, "https://meet.example.com/abc")
