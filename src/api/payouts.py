"""
Payouts API Endpoints
Affiliate payout requests and eligibility
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional
from loguru import logger

from config.payout_config import MIN_PAYOUT_AMOUNT
from src.core.exceptions import LeadPortalError
from src.database.models import User
from src.database.engine import get_session
from src.database.crud import list_payout_requests
from src.api.auth import require_affiliate
from src.api.errors import to_http_exception
from src.api.serializers import serialize_payout
from src.services.payment_methods_service import has_payment_method
from src.services.payout_service import (
    can_request_payout,
    get_unpaid_earnings,
    request_payout,
)

# Create router
router = APIRouter(prefix="/payouts", tags=["payouts"])


class PayoutCreateRequest(BaseModel):
    """Payment method to use; the default method when omitted"""

    method_id: Optional[str] = None


@router.get("")
async def get_payouts(
    user: User = Depends(require_affiliate),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Own payout requests, unpaid earnings and eligibility

    Returns:
        {
            "payouts": [{"id": 3, "amount": 150.0, "status": "requested", ...}],
            "unpaid_earnings": 150.0,
            "min_payout_amount": 100.0,
            "has_payment_method": true,
            "can_request_payout": true
        }
    """
    try:
        payouts = await list_payout_requests(session, affiliate_id=user.id)
        unpaid = await get_unpaid_earnings(session, user.id)
        has_method = has_payment_method(user)

        return {
            "payouts": [serialize_payout(payout) for payout in payouts],
            "unpaid_earnings": float(unpaid),
            "min_payout_amount": float(MIN_PAYOUT_AMOUNT),
            "has_payment_method": has_method,
            "can_request_payout": can_request_payout(unpaid, has_method),
        }

    except Exception as e:
        logger.exception(f"Error fetching payouts for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch payouts")


@router.post("")
async def create_payout(
    request: Optional[PayoutCreateRequest] = None,
    user: User = Depends(require_affiliate),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Request a payout of all unpaid earnings

    Errors:
        400: Below the minimum payout amount or no payment method
        404: Unknown method_id
    """
    try:
        payout = await request_payout(
            session, user, method_id=request.method_id if request else None
        )
        return {"success": True, "payout": serialize_payout(payout)}

    except LeadPortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error requesting payout for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to request payout")
