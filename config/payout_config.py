# coding: utf-8
"""
Lead & Payout Configuration

Business constants for lead submission and affiliate payouts.
Changing these does not require a database migration.
"""

from decimal import Decimal


# =======================
# PAYOUT SETTINGS
# =======================

# Unpaid earnings must reach this amount before a payout can be requested
MIN_PAYOUT_AMOUNT = Decimal("100")

PAYMENT_METHOD_LABELS = {
    "paypal": "PayPal",
    "wise": "Wise",
    "bank_transfer": "Bank Transfer",
}


# =======================
# LEAD SETTINGS
# =======================

PROGRAMS = [
    "The Smart Acquisition Program",
    "The Acquisition Partnership",
    "The Automation Program",
]

# Affiliates may edit their own pending lead for this long after submitting it
LEAD_EDIT_WINDOW_MINUTES = 30


# =======================
# ADMIN DASHBOARD
# =======================

TOP_AFFILIATES_LIMIT = 10


def get_payment_method_label(method_type: str) -> str:
    """Human readable label for a payment method type"""
    return PAYMENT_METHOD_LABELS.get(method_type, method_type)
