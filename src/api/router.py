"""
FastAPI Router for the Affiliate Leads Portal API
"""

from fastapi import APIRouter

# Import sub-routers
from src.api.profile import router as profile_router
from src.api.leads import router as leads_router
from src.api.payment_methods import router as payment_methods_router
from src.api.payouts import router as payouts_router
from src.api.admin import router as admin_router


# Main router, mounted under /api by api_server
router = APIRouter()

# Include sub-routers (they already carry their prefixes)
router.include_router(profile_router)
router.include_router(leads_router)
router.include_router(payment_methods_router)
router.include_router(payouts_router)
router.include_router(admin_router)  # Admin dashboard, requires is_admin
