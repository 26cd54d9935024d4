"""
Domain errors raised by services and translated to HTTP responses by the API layer.
"""


class LeadPortalError(Exception):
    """Base class for all business errors"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LeadPortalError):
    """Input or state rejected; nothing was written"""

    status_code = 400


class NotFoundError(LeadPortalError):
    status_code = 404


class PermissionDeniedError(LeadPortalError):
    status_code = 403


class PayoutReconciliationError(LeadPortalError):
    """Payout approval could not mark the covered leads paid.

    The approval transaction is rolled back, so the payout stays requested.
    """

    status_code = 500

    def __init__(self, payout_id: int, cause: Exception):
        super().__init__(
            f"Payout {payout_id} approval rolled back: lead reconciliation failed ({cause})"
        )
        self.payout_id = payout_id
        self.cause = cause
