"""
Translate domain errors from the services into HTTP responses
"""

from fastapi import HTTPException
from loguru import logger

from src.core.exceptions import LeadPortalError, PayoutReconciliationError


def to_http_exception(exc: LeadPortalError) -> HTTPException:
    """
    Map a LeadPortalError to an HTTPException with the same status code

    Reconciliation failures keep their own message so the admin can tell
    them apart from generic write failures.
    """
    if isinstance(exc, PayoutReconciliationError):
        logger.error(exc.message)
    return HTTPException(status_code=exc.status_code, detail=exc.message)
