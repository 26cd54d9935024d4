"""
Profile API Endpoints
Own profile with earnings summary, self-service profile updates
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field
from loguru import logger

from src.database.models import User
from src.database.engine import get_session
from src.database.crud import get_affiliate_leads, update_user_profile
from src.api.auth import get_current_user
from src.api.serializers import serialize_user
from src.services.earnings_service import aggregate_earnings

# Create router
router = APIRouter(prefix="/profile", tags=["profile"])


class ProfileUpdateRequest(BaseModel):
    """Fields left out are kept; an empty string clears a field"""

    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    profile_image: Optional[str] = Field(None, max_length=512, description="Avatar URL")


@router.get("")
async def get_profile(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Get own profile and earnings summary

    Returns:
        {
            "user": {"id": 1, "email": "...", "is_admin": false, ...},
            "stats": {
                "total": 12, "approved": 7, "pending": 3, "rejected": 2,
                "total_earnings": 650.0, "paid_earnings": 300.0, "unpaid_earnings": 350.0
            }
        }
    """
    try:
        leads = await get_affiliate_leads(session, user.id)
        summary = aggregate_earnings(leads)

        return {
            "user": serialize_user(user),
            "stats": summary.to_dict(),
        }

    except Exception as e:
        logger.exception(f"Error fetching profile for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch profile")


@router.patch("")
async def update_profile(
    request: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Update first name, last name or profile image URL

    Body:
        {"first_name": "Jane", "profile_image": "https://cdn.example.com/jane.png"}
    """
    try:
        user = await update_user_profile(
            session,
            user,
            first_name=request.first_name,
            last_name=request.last_name,
            profile_image=request.profile_image,
        )
        return {"success": True, "user": serialize_user(user)}

    except Exception as e:
        logger.exception(f"Error updating profile for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update profile")
