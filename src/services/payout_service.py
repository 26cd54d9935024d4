# coding: utf-8
"""
Payout Eligibility & Allocation

Affiliates request their full unpaid earnings once they reach
MIN_PAYOUT_AMOUNT and have a payment method on file. When an admin
approves a request, leads are allocated to it greedily in creation
order and marked paid.

Allocation rule (first-fit, in order):
    walk the affiliate's unpaid approved leads oldest first,
    take each lead while its price still fits the remaining amount,
    stop at the first lead that does not fit.
Whatever is left over is reported back, not stored.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from config.payout_config import MIN_PAYOUT_AMOUNT
from src.core.enums import PayoutStatus
from src.core.exceptions import (
    NotFoundError,
    PayoutReconciliationError,
    ValidationError,
)
from src.database.crud import (
    create_payout_request,
    get_payout_request,
    get_unpaid_approved_leads,
    list_leads,
    mark_leads_paid,
    update_payout_status,
)
from src.database.models import PayoutRequest, User
from src.services.earnings_service import ZERO, aggregate_earnings, lead_price
from src.services.payment_methods_service import (
    find_payment_method,
    get_default_payment_method,
    snapshot_details,
)


@dataclass
class AllocationResult:
    """Leads covered by a payout and the amount nothing could absorb"""

    paid_lead_ids: List[int] = field(default_factory=list)
    remaining_unallocated: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "paid_lead_ids": list(self.paid_lead_ids),
            "remaining_unallocated": float(self.remaining_unallocated),
        }


def can_request_payout(unpaid_earnings: Decimal, has_payment_method: bool) -> bool:
    """True when the affiliate has enough unpaid earnings and somewhere to send them"""
    return Decimal(str(unpaid_earnings)) >= MIN_PAYOUT_AMOUNT and bool(has_payment_method)


def allocate_payout(leads: Iterable, payout_amount: Decimal) -> AllocationResult:
    """
    Pick the leads a payout covers

    Args:
        leads: Unpaid approved leads, already sorted oldest first
        payout_amount: Amount being paid out

    Returns:
        AllocationResult with the selected lead ids in order
    """
    remaining = Decimal(str(payout_amount))
    paid_lead_ids: List[int] = []

    for lead in leads:
        price = lead_price(lead)
        if price > remaining:
            break
        paid_lead_ids.append(lead.id)
        remaining -= price

    return AllocationResult(paid_lead_ids=paid_lead_ids, remaining_unallocated=remaining)


async def get_unpaid_earnings(session: AsyncSession, affiliate_id: int) -> Decimal:
    leads = await list_leads(session, affiliate_id=affiliate_id)
    return aggregate_earnings(leads).unpaid_earnings


async def request_payout(
    session: AsyncSession, user: User, method_id: Optional[str] = None
) -> PayoutRequest:
    """
    Create a payout request for all unpaid earnings

    The chosen payment method is copied into the request, so later edits
    to the user's methods do not change where this payout goes.

    Args:
        session: Database session
        user: Requesting affiliate
        method_id: Payment method to use (default method, else the first one)

    Returns:
        Created PayoutRequest

    Raises:
        ValidationError: Below the minimum or no payment method configured
        NotFoundError: method_id does not belong to the user
    """
    unpaid = await get_unpaid_earnings(session, user.id)

    if unpaid < MIN_PAYOUT_AMOUNT:
        raise ValidationError(
            f"You need at least ${MIN_PAYOUT_AMOUNT} in unpaid earnings to request a payout "
            f"(current: ${unpaid})"
        )

    if method_id:
        method = find_payment_method(user, method_id)
    else:
        method = get_default_payment_method(user)

    if method is None:
        raise ValidationError("Add a payment method before requesting a payout")

    payout = await create_payout_request(
        session,
        affiliate_id=user.id,
        amount=unpaid,
        method=method.type,
        details=snapshot_details(method),
    )
    logger.info(f"User {user.id} requested payout {payout.id}: ${unpaid} via {method.type}")
    return payout


async def _get_open_payout(session: AsyncSession, payout_id: int) -> PayoutRequest:
    payout = await get_payout_request(session, payout_id)
    if not payout:
        raise NotFoundError(f"Payout request {payout_id} not found")
    if payout.status != PayoutStatus.REQUESTED.value:
        raise ValidationError(f"Payout request {payout_id} is already {payout.status}")
    return payout


async def approve_payout(
    session: AsyncSession, payout_id: int, note: Optional[str] = None
) -> AllocationResult:
    """
    Approve a payout request and mark the leads it covers as paid

    The status change and the lead update are committed together. If
    marking leads fails, or some allocated leads were already paid by a
    concurrent approval, nothing is committed and the request stays
    "requested".

    Raises:
        NotFoundError: Unknown payout id
        ValidationError: Payout was already processed
        PayoutReconciliationError: Leads could not be marked paid
    """
    payout = await _get_open_payout(session, payout_id)
    affiliate_id = payout.affiliate_id
    amount = payout.amount

    leads = await get_unpaid_approved_leads(session, affiliate_id)
    allocation = allocate_payout(leads, amount)

    try:
        await update_payout_status(
            session, payout, PayoutStatus.APPROVED.value, note=note, commit=False
        )
        updated = await mark_leads_paid(session, allocation.paid_lead_ids, commit=False)
        if updated != len(allocation.paid_lead_ids):
            # Another approval paid some of these leads first
            raise ValueError(
                f"only {updated} of {len(allocation.paid_lead_ids)} allocated leads were still unpaid"
            )
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(
            f"Payout {payout_id} approval rolled back, "
            f"{len(allocation.paid_lead_ids)} leads not marked paid: {e}"
        )
        raise PayoutReconciliationError(payout_id, e) from e

    logger.info(
        f"Payout {payout_id} approved: ${amount} for affiliate {affiliate_id}, "
        f"{len(allocation.paid_lead_ids)} leads paid, ${allocation.remaining_unallocated} unallocated"
    )
    return allocation


async def reject_payout(
    session: AsyncSession, payout_id: int, note: Optional[str] = None
) -> PayoutRequest:
    """Reject a payout request; no leads are touched"""
    payout = await _get_open_payout(session, payout_id)
    payout = await update_payout_status(session, payout, PayoutStatus.REJECTED.value, note=note)
    logger.info(f"Payout {payout_id} rejected for affiliate {payout.affiliate_id}")
    return payout
