"""
Authentication for the web frontend

The hosted auth provider signs a JWT for the signed-in user; every API
request carries it as "Authorization: Bearer <token>". We verify the
signature, read the email claim and map it to a local user, creating
the user on first sign-in.
"""

from typing import Optional, Dict, Any

from fastapi import HTTPException, Header, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from jose import JWTError, jwt
from loguru import logger

from src.database.crud import get_or_create_user
from src.database.models import User
from src.database.engine import get_session
from config.config import (
    ADMIN_EMAILS,
    AUTH_JWT_ALGORITHM,
    AUTH_JWT_AUDIENCE,
    AUTH_JWT_SECRET,
)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate an access token from the auth provider.

    Args:
        token: JWT from the Authorization header

    Returns:
        dict: Decoded JWT payload

    Raises:
        HTTPException: If token is invalid, expired or has no email
    """
    try:
        options = {"verify_aud": bool(AUTH_JWT_AUDIENCE)}
        payload = jwt.decode(
            token,
            AUTH_JWT_SECRET,
            algorithms=[AUTH_JWT_ALGORITHM],
            audience=AUTH_JWT_AUDIENCE or None,
            options=options,
        )
    except JWTError as e:
        raise HTTPException(
            status_code=401,
            detail=f"Invalid JWT token: {str(e)}"
        )

    if not payload.get('email'):
        raise HTTPException(
            status_code=401,
            detail="Missing email in JWT payload"
        )

    return payload


def _name_from_metadata(payload: Dict[str, Any], key: str) -> Optional[str]:
    metadata = payload.get('user_metadata') or {}
    value = metadata.get(key) or payload.get(key)
    return value.strip() if isinstance(value, str) and value.strip() else None


async def get_current_user(
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session)
) -> User:
    """
    FastAPI dependency that resolves the signed-in user.

    Args:
        authorization: "Bearer <jwt_token>" header
        session: Database session

    Returns:
        User: Authenticated user from database

    Raises:
        HTTPException: 401 without a valid token, 403 for suspended users

    Usage:
        @router.get("/profile")
        async def get_profile(user: User = Depends(get_current_user)):
            return {"user_id": user.id}
    """
    if not authorization or not authorization.startswith('Bearer '):
        raise HTTPException(
            status_code=401,
            detail="Invalid authorization header. Expected: 'Bearer <token>'"
        )

    token = authorization[7:]  # Remove "Bearer " prefix
    payload = decode_access_token(token)
    email = payload['email'].strip().lower()

    user, is_new = await get_or_create_user(
        session,
        email=email,
        first_name=_name_from_metadata(payload, 'first_name'),
        last_name=_name_from_metadata(payload, 'last_name'),
        is_admin=email in ADMIN_EMAILS,
    )

    if is_new:
        logger.info(f"Auto-created user on first sign-in: {email} (admin={user.is_admin})")

    if user.is_suspended:
        raise HTTPException(
            status_code=403,
            detail="Your account has been suspended"
        )

    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Dependency that requires admin privileges"""
    if not user.is_admin:
        raise HTTPException(
            status_code=403,
            detail="Admin privileges required"
        )
    return user


async def require_affiliate(user: User = Depends(get_current_user)) -> User:
    """Dependency for lead and payout routes, which admins do not use"""
    if user.is_admin:
        raise HTTPException(
            status_code=403,
            detail="This page is only available to affiliates"
        )
    return user
