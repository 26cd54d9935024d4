"""
Admin API Endpoints

Platform overview, lead review, user management and payout processing.
Every endpoint requires an admin user.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from config.payout_config import TOP_AFFILIATES_LIMIT
from src.core.exceptions import LeadPortalError
from src.database.engine import get_session
from src.database.models import User
from src.database.crud import (
    delete_user,
    get_affiliate_leads,
    get_user_by_id,
    list_leads,
    list_payout_requests,
    list_users,
    set_user_suspended,
)
from src.api.auth import require_admin
from src.api.errors import to_http_exception
from src.api.serializers import (
    serialize_lead,
    serialize_payout,
    serialize_user,
    serialize_user_with_stats,
)
from src.services.earnings_service import (
    affiliate_stats,
    aggregate_earnings,
    platform_overview,
    top_affiliates,
)
from src.services.lead_service import LeadService
from src.services.payout_service import approve_payout, reject_payout


router = APIRouter(prefix="/admin", tags=["admin"])


# ===========================
# REQUEST MODELS
# ===========================


class LeadReviewRequest(BaseModel):
    """Only the fields sent are changed; price=null clears the price"""

    status: Optional[str] = None
    price: Optional[float] = None
    admin_note: Optional[str] = None
    call_meeting_link: Optional[str] = None


class CallRequest(BaseModel):
    meeting_link: str = Field(..., min_length=1, max_length=512)


class SuspendRequest(BaseModel):
    """Explicit value, or toggle the current state when omitted"""

    suspended: Optional[bool] = None


class PayoutDecisionRequest(BaseModel):
    note: Optional[str] = None


# ===========================
# OVERVIEW
# ===========================


@router.get("/overview")
async def get_overview(
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Platform totals and top affiliates by total earnings

    Returns:
        {
            "stats": {"total_users": 10, "total_leads": 55, "pending_payouts": 2, ...},
            "top_affiliates": [{"id": 4, "email": "...", "stats": {...}}, ...]
        }
    """
    try:
        users = await list_users(session)
        leads = await list_leads(session)
        payouts = await list_payout_requests(session)

        ranked = top_affiliates(affiliate_stats(users, leads), limit=TOP_AFFILIATES_LIMIT)

        return {
            "stats": platform_overview(users, leads, payouts),
            "top_affiliates": [
                serialize_user_with_stats(entry["user"], entry["summary"]) for entry in ranked
            ],
        }

    except Exception as e:
        logger.exception(f"Error building admin overview: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch overview")


# ===========================
# LEADS
# ===========================


@router.get("/leads")
async def get_all_leads(
    status: Optional[str] = Query(None, description="pending, approved or rejected"),
    program: Optional[str] = Query(None),
    call_requested: Optional[bool] = Query(None),
    affiliate_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, description="Lead name or email"),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Filtered leads of all affiliates, newest first"""
    try:
        leads = await list_leads(
            session,
            affiliate_id=affiliate_id,
            status=status,
            program=program,
            call_requested=call_requested,
            search=search,
        )
        affiliates = {user.id: user for user in await list_users(session)}

        items = []
        for lead in leads:
            data = serialize_lead(lead)
            affiliate = affiliates.get(lead.affiliate_id)
            data["affiliate_email"] = affiliate.email if affiliate else None
            data["affiliate_name"] = affiliate.full_name if affiliate else None
            items.append(data)

        return {"leads": items, "total": len(items)}

    except Exception as e:
        logger.exception(f"Error fetching admin leads: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch leads")


@router.patch("/leads/{lead_id}")
async def review_lead(
    lead_id: int,
    request: LeadReviewRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Review a lead

    Body:
        {"status": "approved", "price": 150, "admin_note": "Qualified"}

    Errors:
        400: Illegal status change or price
        404: Lead not found
    """
    try:
        changes = {
            field: getattr(request, field)
            for field in ("price", "admin_note", "call_meeting_link")
            if field in request.model_fields_set
        }
        lead = await LeadService.review_lead(session, lead_id, status=request.status, **changes)
        logger.info(f"Admin {admin.id} reviewed lead {lead_id}")
        return {"success": True, "lead": serialize_lead(lead)}

    except LeadPortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error reviewing lead {lead_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update lead")


@router.post("/leads/{lead_id}/call")
async def request_lead_call(
    lead_id: int,
    request: CallRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Attach a meeting link to a lead and flag it for a call"""
    try:
        lead = await LeadService.request_call(session, lead_id, request.meeting_link)
        return {"success": True, "lead": serialize_lead(lead)}

    except LeadPortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error requesting call for lead {lead_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to request call")


# ===========================
# USERS
# ===========================


@router.get("/users")
async def get_users(
    search: Optional[str] = Query(None, description="Email, first or last name"),
    role: Optional[str] = Query(None, description="affiliate or admin"),
    has_earnings: Optional[bool] = Query(None),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Users with per-user lead stats"""
    if role is not None and role not in ("affiliate", "admin"):
        raise HTTPException(status_code=400, detail="Invalid role. Must be one of: affiliate, admin")

    try:
        users = await list_users(session, search=search, role=role)
        leads = await list_leads(session)

        stats = affiliate_stats(users, leads)
        if has_earnings is not None:
            stats = [
                entry for entry in stats
                if (entry["summary"].total_earnings > 0) == has_earnings
            ]

        return {
            "users": [serialize_user_with_stats(entry["user"], entry["summary"]) for entry in stats],
            "total": len(stats),
        }

    except Exception as e:
        logger.exception(f"Error fetching admin users: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch users")


@router.get("/users/{user_id}")
async def get_user_detail(
    user_id: int,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """User profile with stats, leads and payout requests"""
    try:
        user = await get_user_by_id(session, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        leads = await get_affiliate_leads(session, user_id)
        payouts = await list_payout_requests(session, affiliate_id=user_id)

        return {
            "user": serialize_user(user),
            "stats": aggregate_earnings(leads).to_dict(),
            "leads": [serialize_lead(lead) for lead in leads],
            "payouts": [serialize_payout(payout) for payout in payouts],
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error fetching user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch user")


@router.post("/users/{user_id}/suspend")
async def suspend_user(
    user_id: int,
    request: Optional[SuspendRequest] = None,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Suspend or reinstate a user (toggles when no value is given)"""
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot suspend yourself")

    try:
        user = await get_user_by_id(session, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        suspended = request.suspended if request and request.suspended is not None else not user.is_suspended
        user = await set_user_suspended(session, user_id, suspended)

        logger.info(f"Admin {admin.id} set suspended={suspended} for user {user_id}")
        return {"success": True, "user": serialize_user(user)}

    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error suspending user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update user")


@router.delete("/users/{user_id}")
async def remove_user(
    user_id: int,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Hard delete a user with all their leads and payout requests"""
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete yourself")

    try:
        deleted = await delete_user(session, user_id)
        if not deleted:
            raise HTTPException(status_code=404, detail="User not found")

        logger.warning(f"Admin {admin.id} deleted user {user_id}")
        return {"success": True, "user_id": user_id}

    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error deleting user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete user")


# ===========================
# PAYOUTS
# ===========================


@router.get("/payouts")
async def get_all_payouts(
    status: Optional[str] = Query(None, description="requested, approved or rejected"),
    method: Optional[str] = Query(None, description="paypal, wise or bank_transfer"),
    search: Optional[str] = Query(None, description="Affiliate email or name"),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Filtered payout requests of all affiliates, newest first"""
    try:
        payouts = await list_payout_requests(session, status=status, method=method, search=search)
        return {
            "payouts": [serialize_payout(payout, include_affiliate=True) for payout in payouts],
            "total": len(payouts),
        }

    except Exception as e:
        logger.exception(f"Error fetching admin payouts: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch payouts")


@router.post("/payouts/{payout_id}/approve")
async def approve_payout_request(
    payout_id: int,
    request: Optional[PayoutDecisionRequest] = None,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Approve a payout and mark the leads it covers as paid

    Returns:
        {
            "success": true,
            "payout_id": 3,
            "paid_lead_ids": [11, 12],
            "remaining_unallocated": 0.0
        }

    Errors:
        400: Payout already processed
        404: Payout not found
        500: Leads could not be marked paid (approval rolled back)
    """
    try:
        allocation = await approve_payout(
            session, payout_id, note=request.note if request else None
        )
        logger.info(f"Admin {admin.id} approved payout {payout_id}")
        return {"success": True, "payout_id": payout_id, **allocation.to_dict()}

    except LeadPortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error approving payout {payout_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to approve payout")


@router.post("/payouts/{payout_id}/reject")
async def reject_payout_request(
    payout_id: int,
    request: Optional[PayoutDecisionRequest] = None,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Reject a payout request; no leads are marked paid"""
    try:
        payout = await reject_payout(session, payout_id, note=request.note if request else None)
        logger.info(f"Admin {admin.id} rejected payout {payout_id}")
        return {"success": True, "payout": serialize_payout(payout)}

    except LeadPortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error rejecting payout {payout_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to reject payout")
