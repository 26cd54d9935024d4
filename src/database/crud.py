"""
CRUD operations for Affiliate Leads Portal

Async database operations using SQLAlchemy 2.0.
This is the whole Record Store surface: services never build queries themselves.
"""

import logging
from datetime import datetime, UTC
from decimal import Decimal
from functools import wraps
from typing import Callable, Iterable, List, Optional

from sqlalchemy import select, update, delete, or_
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from src.core.enums import LeadStatus, PayoutStatus
from src.database.models import User, Lead, PayoutRequest

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for undefined_table
UNDEFINED_TABLE_SQLSTATE = "42P01"


# ===========================
# MISSING RELATION HANDLING
# ===========================


def is_missing_relation(exc: Exception) -> bool:
    """
    Check if a database error means "table does not exist"

    Recognises PostgreSQL 42P01 and SQLite "no such table".
    """
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == UNDEFINED_TABLE_SQLSTATE:
        return True

    message = str(orig if orig is not None else exc).lower()
    return "no such table" in message or (
        "relation" in message and "does not exist" in message
    )


def empty_on_missing_relation(default_factory: Callable):
    """
    Decorator for read queries: a missing table yields an empty result

    An uninitialised store renders as "no data" instead of an error.
    Any other database error propagates unchanged.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(session: AsyncSession, *args, **kwargs):
            try:
                return await func(session, *args, **kwargs)
            except (ProgrammingError, OperationalError) as e:
                if not is_missing_relation(e):
                    raise
                await session.rollback()
                logger.warning(f"{func.__name__}: table missing, returning empty result ({e.orig})")
                return default_factory()

        return wrapper

    return decorator


# ===========================
# USER OPERATIONS
# ===========================


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[User]:
    """
    Get user by primary key

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User model or None
    """
    return await session.get(User, user_id)


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    """
    Get user by email (case-insensitive)

    Args:
        session: Database session
        email: User email

    Returns:
        User model or None
    """
    stmt = select(User).where(User.email == email.strip().lower())
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    email: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    is_admin: bool = False,
) -> User:
    """
    Create new user

    Args:
        session: Database session
        email: User email
        first_name: User first name
        last_name: User last name
        is_admin: Is user an admin

    Returns:
        Created User model
    """
    user = User(
        email=email.strip().lower(),
        first_name=first_name,
        last_name=last_name,
        is_admin=is_admin,
        payout_methods=[],
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"User created: {user.email} (admin={is_admin})")
    return user


async def get_or_create_user(
    session: AsyncSession,
    email: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    is_admin: bool = False,
) -> tuple[User, bool]:
    """
    Get existing user or create new one on first authentication

    Args:
        session: Database session
        email: User email
        first_name: First name from the auth provider metadata
        last_name: Last name from the auth provider metadata
        is_admin: Role for a newly created user

    Returns:
        Tuple of (User model, is_created)
    """
    user = await get_user_by_email(session, email)

    if user:
        user.last_activity = datetime.now(UTC)
        await session.commit()
        return user, False

    user = await create_user(
        session,
        email=email,
        first_name=first_name,
        last_name=last_name,
        is_admin=is_admin,
    )
    return user, True


async def update_user_profile(
    session: AsyncSession,
    user: User,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    profile_image: Optional[str] = None,
) -> User:
    """
    Update self-service profile fields

    None leaves a field untouched, an empty string clears it.
    """
    for field, value in (
        ("first_name", first_name),
        ("last_name", last_name),
        ("profile_image", profile_image),
    ):
        if value is not None:
            setattr(user, field, value.strip() or None)

    await session.commit()
    await session.refresh(user)

    logger.info(f"Profile updated for user {user.id}")
    return user


async def set_user_suspended(
    session: AsyncSession, user_id: int, is_suspended: bool
) -> Optional[User]:
    """
    Suspend or reinstate a user

    Returns:
        Updated User model or None if not found
    """
    user = await get_user_by_id(session, user_id)
    if not user:
        return None

    user.is_suspended = is_suspended
    await session.commit()
    await session.refresh(user)

    logger.info(f"User {user_id} suspended={is_suspended}")
    return user


async def set_payout_methods(
    session: AsyncSession, user: User, methods: List[dict]
) -> User:
    """
    Replace the user's payment method list

    A new list object is assigned so the JSON column is flagged dirty.
    """
    user.payout_methods = list(methods)
    await session.commit()
    await session.refresh(user)
    return user


async def delete_user(session: AsyncSession, user_id: int) -> bool:
    """
    Hard delete a user with their leads and payout requests

    Returns:
        True if a user was deleted
    """
    user = await get_user_by_id(session, user_id)
    if not user:
        return False

    email = user.email
    await session.execute(delete(PayoutRequest).where(PayoutRequest.affiliate_id == user_id))
    await session.execute(delete(Lead).where(Lead.affiliate_id == user_id))
    await session.execute(delete(User).where(User.id == user_id))
    await session.commit()

    logger.warning(f"User {user_id} ({email}) deleted with all leads and payouts")
    return True


@empty_on_missing_relation(list)
async def list_users(
    session: AsyncSession,
    search: Optional[str] = None,
    role: Optional[str] = None,
) -> List[User]:
    """
    List users, newest first

    Args:
        session: Database session
        search: Substring of email, first or last name
        role: "admin" or "affiliate"

    Returns:
        List of User models
    """
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())

    if role == "admin":
        stmt = stmt.where(User.is_admin.is_(True))
    elif role == "affiliate":
        stmt = stmt.where(User.is_admin.is_(False))

    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                User.email.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
            )
        )

    result = await session.execute(stmt)
    return list(result.scalars().all())


# ===========================
# LEAD OPERATIONS
# ===========================


async def create_lead(
    session: AsyncSession,
    affiliate_id: int,
    full_name: str,
    email: str,
    program: str,
    phone: Optional[str] = None,
    website: Optional[str] = None,
    lead_note: Optional[str] = None,
) -> Lead:
    """
    Insert a new pending lead

    Returns:
        Created Lead model
    """
    lead = Lead(
        affiliate_id=affiliate_id,
        full_name=full_name,
        email=email,
        phone=phone,
        website=website,
        program=program,
        lead_note=lead_note,
        status=LeadStatus.PENDING.value,
        paid=False,
        call_requested=False,
    )
    session.add(lead)
    await session.commit()
    await session.refresh(lead)

    logger.info(f"Lead {lead.id} submitted by affiliate {affiliate_id} for '{program}'")
    return lead


async def get_lead(session: AsyncSession, lead_id: int) -> Optional[Lead]:
    """Get lead by ID"""
    return await session.get(Lead, lead_id)


@empty_on_missing_relation(list)
async def list_leads(
    session: AsyncSession,
    affiliate_id: Optional[int] = None,
    status: Optional[str] = None,
    program: Optional[str] = None,
    call_requested: Optional[bool] = None,
    search: Optional[str] = None,
) -> List[Lead]:
    """
    List leads, newest first

    Args:
        session: Database session
        affiliate_id: Only leads of this affiliate
        status: pending / approved / rejected
        program: Exact program name
        call_requested: Filter by call flag
        search: Substring of lead name or email

    Returns:
        List of Lead models
    """
    stmt = select(Lead).order_by(Lead.created_at.desc(), Lead.id.desc())

    if affiliate_id is not None:
        stmt = stmt.where(Lead.affiliate_id == affiliate_id)
    if status:
        stmt = stmt.where(Lead.status == status)
    if program:
        stmt = stmt.where(Lead.program == program)
    if call_requested is not None:
        stmt = stmt.where(Lead.call_requested.is_(call_requested))
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(Lead.full_name.ilike(pattern), Lead.email.ilike(pattern)))

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_affiliate_leads(session: AsyncSession, affiliate_id: int) -> List[Lead]:
    """All leads of one affiliate, newest first"""
    return await list_leads(session, affiliate_id=affiliate_id)


async def get_unpaid_approved_leads(
    session: AsyncSession, affiliate_id: int
) -> List[Lead]:
    """
    Approved, not yet paid leads of an affiliate in creation order (oldest first)

    This order decides which leads a payout covers.
    """
    stmt = (
        select(Lead)
        .where(
            Lead.affiliate_id == affiliate_id,
            Lead.status == LeadStatus.APPROVED.value,
            Lead.paid.is_(False),
        )
        .order_by(Lead.created_at.asc(), Lead.id.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_lead(session: AsyncSession, lead: Lead, **changes) -> Lead:
    """
    Apply field changes to a lead and commit

    Callers validate the changes; this only persists them.
    """
    for field, value in changes.items():
        setattr(lead, field, value)

    await session.commit()
    await session.refresh(lead)
    return lead


async def mark_leads_paid(
    session: AsyncSession, lead_ids: Iterable[int], commit: bool = True
) -> int:
    """
    Batch update: set paid=True on the given approved, still unpaid leads

    Args:
        session: Database session
        lead_ids: Lead IDs to mark
        commit: Commit immediately (False when part of a larger transaction)

    Returns:
        Number of rows updated
    """
    lead_ids = list(lead_ids)
    if not lead_ids:
        return 0

    stmt = (
        update(Lead)
        .where(
            Lead.id.in_(lead_ids),
            Lead.status == LeadStatus.APPROVED.value,
            Lead.paid.is_(False),
        )
        .values(paid=True, updated_at=datetime.now(UTC))
        .execution_options(synchronize_session="fetch")
    )
    result = await session.execute(stmt)

    if commit:
        await session.commit()

    return result.rowcount


# ===========================
# PAYOUT OPERATIONS
# ===========================


async def create_payout_request(
    session: AsyncSession,
    affiliate_id: int,
    amount: Decimal,
    method: str,
    details: dict,
) -> PayoutRequest:
    """
    Insert a payout request in "requested" status

    Args:
        session: Database session
        affiliate_id: Requesting affiliate
        amount: Payout amount
        method: Payment method type
        details: Payment details snapshot

    Returns:
        Created PayoutRequest model
    """
    payout = PayoutRequest(
        affiliate_id=affiliate_id,
        amount=amount,
        method=method,
        details=dict(details),
        status=PayoutStatus.REQUESTED.value,
    )
    session.add(payout)
    await session.commit()
    await session.refresh(payout)

    logger.info(f"Payout request {payout.id} created: ${amount} via {method} for affiliate {affiliate_id}")
    return payout


async def get_payout_request(
    session: AsyncSession, payout_id: int
) -> Optional[PayoutRequest]:
    """Get payout request by ID"""
    return await session.get(PayoutRequest, payout_id)


@empty_on_missing_relation(list)
async def list_payout_requests(
    session: AsyncSession,
    affiliate_id: Optional[int] = None,
    status: Optional[str] = None,
    method: Optional[str] = None,
    search: Optional[str] = None,
) -> List[PayoutRequest]:
    """
    List payout requests with their affiliate loaded, newest first

    Args:
        session: Database session
        affiliate_id: Only requests of this affiliate
        status: requested / approved / rejected
        method: paypal / wise / bank_transfer
        search: Substring of the affiliate's email, first or last name

    Returns:
        List of PayoutRequest models
    """
    stmt = (
        select(PayoutRequest)
        .join(User, PayoutRequest.affiliate_id == User.id)
        .options(joinedload(PayoutRequest.affiliate))
        .order_by(PayoutRequest.created_at.desc(), PayoutRequest.id.desc())
    )

    if affiliate_id is not None:
        stmt = stmt.where(PayoutRequest.affiliate_id == affiliate_id)
    if status:
        stmt = stmt.where(PayoutRequest.status == status)
    if method:
        stmt = stmt.where(PayoutRequest.method == method)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                User.email.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
            )
        )

    result = await session.execute(stmt)
    return list(result.scalars().unique().all())


async def update_payout_status(
    session: AsyncSession,
    payout: PayoutRequest,
    status: str,
    note: Optional[str] = None,
    commit: bool = True,
) -> PayoutRequest:
    """
    Set payout status and optional admin note

    Args:
        session: Database session
        payout: PayoutRequest to update
        status: New status
        note: Admin note (kept unchanged when None)
        commit: Commit immediately (False when part of a larger transaction)

    Returns:
        Updated PayoutRequest
    """
    payout.status = status
    if note is not None:
        payout.note = note
    payout.processed_at = datetime.now(UTC)

    if commit:
        await session.commit()
        await session.refresh(payout)
    else:
        await session.flush()

    return payout
