"""
Core module - shared enums and domain errors.
"""

from src.core.enums import (
    LeadStatus,
    PayoutStatus,
    PaymentMethodType,
)
from src.core.exceptions import (
    LeadPortalError,
    ValidationError,
    NotFoundError,
    PermissionDeniedError,
    PayoutReconciliationError,
)

__all__ = [
    "LeadStatus",
    "PayoutStatus",
    "PaymentMethodType",
    "LeadPortalError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "PayoutReconciliationError",
]
