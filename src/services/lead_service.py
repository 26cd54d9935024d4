# coding: utf-8
"""
Lead Service

Lead submission and self-edit for affiliates, review for admins.

Rules:
- New leads start pending, unpaid, without a call
- An affiliate may edit their own lead while it is pending and
  younger than LEAD_EDIT_WINDOW_MINUTES
- Status only moves out of pending; approved and rejected are final
- A price needs an approved lead, cannot be negative and is frozen once paid
"""

from datetime import datetime, timedelta, UTC
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from pydantic import EmailStr, TypeAdapter, ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from config.payout_config import LEAD_EDIT_WINDOW_MINUTES, PROGRAMS
from src.core.enums import LeadStatus
from src.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.database.crud import create_lead, get_lead, update_lead
from src.database.models import Lead, User
from src.utils.validators import clean_optional, normalize_website

_UNSET = object()

_email_adapter = TypeAdapter(EmailStr)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class LeadService:
    """Business rules around the lead lifecycle"""

    @staticmethod
    def validate_contact(
        full_name: Optional[str],
        email: Optional[str],
        program: Optional[str],
        phone: Optional[str] = None,
        website: Optional[str] = None,
        lead_note: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Validate and normalise the contact fields of a lead

        Returns:
            Dict of cleaned fields ready for the Record Store

        Raises:
            ValidationError: Missing name, invalid email or unknown program
        """
        full_name = clean_optional(full_name)
        email = clean_optional(email)

        if not full_name:
            raise ValidationError("Full name is required")
        if not email:
            raise ValidationError("Email is required")
        try:
            email = _email_adapter.validate_python(email)
        except PydanticValidationError:
            raise ValidationError("Please enter a valid email address")
        if program not in PROGRAMS:
            raise ValidationError(f"Program must be one of: {', '.join(PROGRAMS)}")

        return {
            "full_name": full_name,
            "email": email,
            "program": program,
            "phone": clean_optional(phone),
            "website": normalize_website(website),
            "lead_note": clean_optional(lead_note),
        }

    @staticmethod
    async def submit_lead(
        session: AsyncSession,
        user: User,
        full_name: Optional[str],
        email: Optional[str],
        program: Optional[str],
        phone: Optional[str] = None,
        website: Optional[str] = None,
        lead_note: Optional[str] = None,
    ) -> Lead:
        """Validate and store a new pending lead for the affiliate"""
        fields = LeadService.validate_contact(
            full_name, email, program, phone=phone, website=website, lead_note=lead_note
        )
        return await create_lead(session, affiliate_id=user.id, **fields)

    @staticmethod
    def can_edit(lead: Lead, now: Optional[datetime] = None) -> bool:
        """Pending and still inside the edit window"""
        if lead.status != LeadStatus.PENDING.value:
            return False
        now = now or datetime.now(UTC)
        window = timedelta(minutes=LEAD_EDIT_WINDOW_MINUTES)
        return _as_utc(lead.created_at) > now - window

    @staticmethod
    async def get_own_lead(session: AsyncSession, user: User, lead_id: int) -> Lead:
        lead = await get_lead(session, lead_id)
        if not lead:
            raise NotFoundError(f"Lead {lead_id} not found")
        if lead.affiliate_id != user.id:
            raise PermissionDeniedError("You can only access your own leads")
        return lead

    @staticmethod
    async def edit_own_lead(
        session: AsyncSession,
        user: User,
        lead_id: int,
        full_name: Optional[str],
        email: Optional[str],
        program: Optional[str],
        phone: Optional[str] = None,
        website: Optional[str] = None,
        lead_note: Optional[str] = None,
    ) -> Lead:
        """
        Replace the contact fields of the affiliate's own lead

        Raises:
            NotFoundError: Unknown lead
            PermissionDeniedError: Lead belongs to someone else
            ValidationError: Lead is no longer editable or the fields are invalid
        """
        lead = await LeadService.get_own_lead(session, user, lead_id)

        if not LeadService.can_edit(lead):
            raise ValidationError(
                f"Leads can only be edited while pending and within "
                f"{LEAD_EDIT_WINDOW_MINUTES} minutes of submission"
            )

        fields = LeadService.validate_contact(
            full_name, email, program, phone=phone, website=website, lead_note=lead_note
        )
        lead = await update_lead(session, lead, **fields)
        logger.info(f"Lead {lead_id} edited by affiliate {user.id}")
        return lead

    @staticmethod
    async def review_lead(
        session: AsyncSession,
        lead_id: int,
        status: Optional[str] = None,
        price: Any = _UNSET,
        admin_note: Any = _UNSET,
        call_meeting_link: Any = _UNSET,
    ) -> Lead:
        """
        Admin update of status, price and annotations

        Arguments left unset keep their stored value; price=None clears it.

        Raises:
            NotFoundError: Unknown lead
            ValidationError: Illegal status transition or price
        """
        lead = await get_lead(session, lead_id)
        if not lead:
            raise NotFoundError(f"Lead {lead_id} not found")

        changes: Dict[str, Any] = {}

        new_status = lead.status
        if status is not None:
            if status not in [s.value for s in LeadStatus]:
                raise ValidationError(f"Invalid status: {status}")
            if status != lead.status and lead.status != LeadStatus.PENDING.value:
                raise ValidationError(f"Lead {lead_id} is already {lead.status}")
            new_status = status
            changes["status"] = status

        if price is not _UNSET:
            price = LeadService._parse_price(price)
            if price != lead.price:
                if lead.paid:
                    raise ValidationError("Price cannot change after the lead was paid out")
                if price is not None and new_status != LeadStatus.APPROVED.value:
                    raise ValidationError("A price can only be set on an approved lead")
            changes["price"] = price

        if admin_note is not _UNSET:
            changes["admin_note"] = clean_optional(admin_note)
        if call_meeting_link is not _UNSET:
            changes["call_meeting_link"] = clean_optional(call_meeting_link)

        if not changes:
            return lead

        lead = await update_lead(session, lead, **changes)
        logger.info(f"Lead {lead_id} reviewed: {', '.join(sorted(changes))}")
        return lead

    @staticmethod
    async def request_call(session: AsyncSession, lead_id: int, meeting_link: str) -> Lead:
        """Attach a meeting link and flag the lead for a call"""
        meeting_link = clean_optional(meeting_link)
        if not meeting_link:
            raise ValidationError("Meeting link is required")

        lead = await get_lead(session, lead_id)
        if not lead:
            raise NotFoundError(f"Lead {lead_id} not found")

        lead = await update_lead(
            session, lead, call_requested=True, call_meeting_link=meeting_link
        )
        logger.info(f"Call requested for lead {lead_id}")
        return lead

    @staticmethod
    def _parse_price(value: Any) -> Optional[Decimal]:
        if value is None or value == "":
            return None
        try:
            price = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"Invalid price: {value}")
        if not price.is_finite() or price < 0:
            raise ValidationError("Price must be a non-negative number")
        return price.quantize(Decimal("0.01"))
