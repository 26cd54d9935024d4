"""
JSON shapes of users, leads and payout requests shared by the routers
"""

from datetime import datetime
from typing import Any, Dict, Optional

from config.payout_config import get_payment_method_label
from src.database.models import Lead, PayoutRequest, User
from src.services.earnings_service import EarningsSummary


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": user.full_name,
        "profile_image": user.profile_image,
        "is_admin": user.is_admin,
        "is_suspended": user.is_suspended,
        "created_at": _iso(user.created_at),
        "last_activity": _iso(user.last_activity),
    }


def serialize_user_with_stats(user: User, summary: EarningsSummary) -> Dict[str, Any]:
    data = serialize_user(user)
    data["stats"] = summary.to_dict()
    return data


def serialize_lead(lead: Lead, can_edit: Optional[bool] = None) -> Dict[str, Any]:
    data = {
        "id": lead.id,
        "affiliate_id": lead.affiliate_id,
        "full_name": lead.full_name,
        "email": lead.email,
        "phone": lead.phone,
        "website": lead.website,
        "program": lead.program,
        "lead_note": lead.lead_note,
        "status": lead.status,
        "price": float(lead.price) if lead.price is not None else None,
        "paid": lead.paid,
        "call_requested": lead.call_requested,
        "call_meeting_link": lead.call_meeting_link,
        "admin_note": lead.admin_note,
        "created_at": _iso(lead.created_at),
        "updated_at": _iso(lead.updated_at),
    }
    if can_edit is not None:
        data["can_edit"] = can_edit
    return data


def serialize_payout(payout: PayoutRequest, include_affiliate: bool = False) -> Dict[str, Any]:
    data = {
        "id": payout.id,
        "affiliate_id": payout.affiliate_id,
        "amount": float(payout.amount),
        "method": payout.method,
        "method_label": get_payment_method_label(payout.method),
        "details": payout.details,
        "status": payout.status,
        "note": payout.note,
        "created_at": _iso(payout.created_at),
        "processed_at": _iso(payout.processed_at),
    }
    if include_affiliate:
        affiliate = payout.affiliate
        data["affiliate"] = {
            "id": affiliate.id,
            "email": affiliate.email,
            "full_name": affiliate.full_name,
        }
    return data
