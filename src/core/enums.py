"""
Core Enums - shared status and type values for leads, payouts and payment methods.

Stored in the database as their string values.
"""

from enum import Enum


class LeadStatus(str, Enum):
    """Lead review status.

    pending -> approved | rejected; both outcomes are terminal.
    """

    PENDING = "pending"  # Waiting for admin review
    APPROVED = "approved"  # Accepted, price counts toward earnings
    REJECTED = "rejected"  # Declined, never earns

    @classmethod
    def is_terminal(cls, status: "LeadStatus") -> bool:
        return status in (cls.APPROVED, cls.REJECTED)


class PayoutStatus(str, Enum):
    """Payout request status.

    requested -> approved | rejected; approval marks leads paid.
    """

    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethodType(str, Enum):
    """Supported payout providers"""

    PAYPAL = "paypal"
    WISE = "wise"
    BANK_TRANSFER = "bank_transfer"
