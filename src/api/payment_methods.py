"""
Payment Methods API Endpoints
PayPal, Wise and bank transfer details used for payouts
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, List
from loguru import logger

from config.payout_config import get_payment_method_label
from src.core.exceptions import LeadPortalError
from src.database.models import User
from src.database.engine import get_session
from src.api.auth import get_current_user
from src.api.errors import to_http_exception
from src.services.payment_methods_service import (
    PaymentMethod,
    PaymentMethodInput,
    add_payment_method,
    delete_payment_method,
    list_payment_methods,
    set_default_payment_method,
    update_payment_method,
)

# Create router
router = APIRouter(prefix="/payment-methods", tags=["payment-methods"])


def _serialize(method: PaymentMethod) -> Dict[str, Any]:
    data = method.model_dump(mode="json")
    data["type"] = method.type
    data["label"] = get_payment_method_label(method.type)
    data["summary"] = method.summary()
    return data


def _serialize_all(methods: List[PaymentMethod]) -> List[Dict[str, Any]]:
    return [_serialize(method) for method in methods]


@router.get("")
async def get_payment_methods(
    user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """
    List own payment methods

    Returns:
        {
            "methods": [
                {
                    "id": "pm_3f2a...",
                    "name": "Main PayPal",
                    "is_default": true,
                    "type": "paypal",
                    "details": {"type": "paypal", "email": "me@example.com"},
                    ...
                }
            ]
        }
    """
    try:
        methods = await list_payment_methods(user)
        return {"methods": _serialize_all(methods)}

    except Exception as e:
        logger.exception(f"Error fetching payment methods for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch payment methods")


@router.post("")
async def create_payment_method(
    request: PaymentMethodInput,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Add a payment method

    Body:
        {
            "name": "EUR account",
            "is_default": false,
            "details": {
                "type": "bank_transfer",
                "name": "Jane Doe",
                "iban": "DE89 3704 0044 0532 0130 00",
                "bank_name": "Commerzbank",
                "swift": "COBADEFFXXX"
            }
        }

    Missing or malformed fields are rejected with 422 before reaching here.
    """
    try:
        method = await add_payment_method(session, user, request)
        return {"success": True, "method": _serialize(method)}

    except LeadPortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error adding payment method for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to add payment method")


@router.put("/{method_id}")
async def edit_payment_method(
    method_id: str,
    request: PaymentMethodInput,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Replace a payment method's name, details and default flag"""
    try:
        method = await update_payment_method(session, user, method_id, request)
        return {"success": True, "method": _serialize(method)}

    except LeadPortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error updating payment method {method_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update payment method")


@router.delete("/{method_id}")
async def remove_payment_method(
    method_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Delete a payment method

    Existing payout requests keep the details they were created with.
    """
    try:
        methods = await delete_payment_method(session, user, method_id)
        return {"success": True, "methods": _serialize_all(methods)}

    except LeadPortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error deleting payment method {method_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete payment method")


@router.post("/{method_id}/default")
async def make_default_payment_method(
    method_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Mark a method as default; all others lose the flag"""
    try:
        methods = await set_default_payment_method(session, user, method_id)
        return {"success": True, "methods": _serialize_all(methods)}

    except LeadPortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error setting default payment method {method_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to set default payment method")
