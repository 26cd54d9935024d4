# coding: utf-8
"""
Earnings Aggregator

Pure functions that summarise lead and payout rows. Every figure is
recomputed from the rows passed in; nothing here is cached or stored.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from src.core.enums import LeadStatus, PayoutStatus

ZERO = Decimal("0")


def lead_price(lead) -> Decimal:
    """Price of a lead as Decimal, missing price counts as 0"""
    price = lead.price
    if price is None:
        return ZERO
    return price if isinstance(price, Decimal) else Decimal(str(price))


@dataclass(frozen=True)
class EarningsSummary:
    """Lead counts and earnings of one affiliate (or any lead set)"""

    total: int = 0
    approved: int = 0
    pending: int = 0
    rejected: int = 0
    total_earnings: Decimal = ZERO
    paid_earnings: Decimal = ZERO

    @property
    def unpaid_earnings(self) -> Decimal:
        return self.total_earnings - self.paid_earnings

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["unpaid_earnings"] = self.unpaid_earnings
        for key in ("total_earnings", "paid_earnings", "unpaid_earnings"):
            data[key] = float(data[key])
        return data


def aggregate_earnings(leads: Iterable) -> EarningsSummary:
    """
    Summarise a collection of leads

    Only approved leads earn; paid earnings are approved leads with paid=True.

    Args:
        leads: Objects with status, price and paid attributes

    Returns:
        EarningsSummary (all zeros for an empty collection)
    """
    total = approved = pending = rejected = 0
    total_earnings = paid_earnings = ZERO

    for lead in leads:
        total += 1
        if lead.status == LeadStatus.APPROVED.value:
            approved += 1
            price = lead_price(lead)
            total_earnings += price
            if lead.paid:
                paid_earnings += price
        elif lead.status == LeadStatus.PENDING.value:
            pending += 1
        elif lead.status == LeadStatus.REJECTED.value:
            rejected += 1

    return EarningsSummary(
        total=total,
        approved=approved,
        pending=pending,
        rejected=rejected,
        total_earnings=total_earnings,
        paid_earnings=paid_earnings,
    )


def group_leads_by_affiliate(leads: Iterable) -> Dict[int, List]:
    """Bucket leads by affiliate_id, keeping input order"""
    grouped: Dict[int, List] = {}
    for lead in leads:
        grouped.setdefault(lead.affiliate_id, []).append(lead)
    return grouped


def platform_overview(users: Iterable, leads: Iterable, payouts: Iterable) -> Dict[str, Any]:
    """
    Admin dashboard totals across all users, leads and payout requests
    """
    users = list(users)
    payouts = list(payouts)
    summary = aggregate_earnings(leads)

    return {
        "total_users": len(users),
        "total_affiliates": sum(1 for user in users if not user.is_admin),
        "total_leads": summary.total,
        "pending_leads": summary.pending,
        "approved_leads": summary.approved,
        "total_earnings": float(summary.total_earnings),
        "unpaid_earnings": float(summary.unpaid_earnings),
        "total_payouts": len(payouts),
        "pending_payouts": sum(
            1 for payout in payouts if payout.status == PayoutStatus.REQUESTED.value
        ),
    }


def affiliate_stats(users: Iterable, leads: Iterable) -> List[Dict[str, Any]]:
    """
    Per-user earnings summary, in the order users are given

    Returns:
        [{"user": User, "summary": EarningsSummary}, ...]
    """
    by_affiliate = group_leads_by_affiliate(leads)
    return [
        {"user": user, "summary": aggregate_earnings(by_affiliate.get(user.id, []))}
        for user in users
    ]


def top_affiliates(stats: List[Dict[str, Any]], limit: Optional[int] = 10) -> List[Dict[str, Any]]:
    """
    Sort affiliate stats by total earnings, highest first

    Admins are excluded. Ties keep their incoming order.
    """
    ranked = sorted(
        (entry for entry in stats if not entry["user"].is_admin),
        key=lambda entry: entry["summary"].total_earnings,
        reverse=True,
    )
    return ranked[:limit] if limit is not None else ranked
