"""
Leads API Endpoints
Lead submission, listing and self-edit for affiliates
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional
from loguru import logger

from config.config import LEAD_SUBMIT_RATE_LIMIT
from config.payout_config import PROGRAMS
from src.core.exceptions import LeadPortalError
from src.database.models import User
from src.database.engine import get_session
from src.database.crud import get_affiliate_leads
from src.api.auth import require_affiliate
from src.api.errors import to_http_exception
from src.api.rate_limit import limiter
from src.api.serializers import serialize_lead
from src.services.earnings_service import aggregate_earnings
from src.services.lead_service import LeadService

# Create router
router = APIRouter(prefix="/leads", tags=["leads"])


class LeadFormRequest(BaseModel):
    """Lead contact fields, validated by LeadService"""

    full_name: Optional[str] = None
    email: Optional[str] = None
    program: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    lead_note: Optional[str] = None


@router.get("")
async def list_own_leads(
    user: User = Depends(require_affiliate),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Get own leads (newest first) with lead stats

    Returns:
        {
            "leads": [{"id": 1, "status": "pending", "can_edit": true, ...}],
            "stats": {"total": 1, "approved": 0, ...},
            "programs": ["The Smart Acquisition Program", ...]
        }
    """
    try:
        leads = await get_affiliate_leads(session, user.id)

        return {
            "leads": [serialize_lead(lead, can_edit=LeadService.can_edit(lead)) for lead in leads],
            "stats": aggregate_earnings(leads).to_dict(),
            "programs": PROGRAMS,
        }

    except Exception as e:
        logger.exception(f"Error fetching leads for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch leads")


@router.post("")
@limiter.limit(LEAD_SUBMIT_RATE_LIMIT)
async def submit_lead(
    body: LeadFormRequest,
    request: Request,  # Required by limiter
    user: User = Depends(require_affiliate),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Submit a new lead

    Body:
        {
            "full_name": "Jane Doe",
            "email": "jane@example.com",
            "program": "The Automation Program",
            "website": "example.com"
        }

    Errors:
        400: Missing name, invalid email or unknown program
    """
    try:
        lead = await LeadService.submit_lead(
            session,
            user,
            full_name=body.full_name,
            email=body.email,
            program=body.program,
            phone=body.phone,
            website=body.website,
            lead_note=body.lead_note,
        )
        return {"success": True, "lead": serialize_lead(lead, can_edit=True)}

    except LeadPortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error submitting lead for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to submit lead")


@router.get("/{lead_id}")
async def get_own_lead(
    lead_id: int,
    user: User = Depends(require_affiliate),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Lead detail, including whether it can still be edited"""
    try:
        lead = await LeadService.get_own_lead(session, user, lead_id)
        return {"lead": serialize_lead(lead, can_edit=LeadService.can_edit(lead))}

    except LeadPortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error fetching lead {lead_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch lead")


@router.patch("/{lead_id}")
async def edit_own_lead(
    lead_id: int,
    body: LeadFormRequest,
    user: User = Depends(require_affiliate),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Edit own lead while pending and within the edit window

    Errors:
        400: Edit window closed or invalid fields
        403: Lead belongs to another affiliate
        404: Lead not found
    """
    try:
        lead = await LeadService.edit_own_lead(
            session,
            user,
            lead_id,
            full_name=body.full_name,
            email=body.email,
            program=body.program,
            phone=body.phone,
            website=body.website,
            lead_note=body.lead_note,
        )
        return {"success": True, "lead": serialize_lead(lead, can_edit=LeadService.can_edit(lead))}

    except LeadPortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error editing lead {lead_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update lead")
