"""
FastAPI Router for the Trading Bot Platform API
"""

from fastapi import APIRouter

# Import sub-routers
from src.api.account import router as account_router
from src.api.bots import router as bots_router
from src.api.wallet import router as wallet_router
from src.api.referral import router as referral_router
from src.api.kyc import router as kyc_router
from src.api.notifications import router as notifications_router
from src.api.config import router as config_router
from src.api.admin import router as admin_router


# Main router
router = APIRouter()

# Include sub-routers (they already carry their prefixes)
router.include_router(account_router)  # Register / login / me
router.include_router(bots_router)  # Catalog + user bot positions
router.include_router(wallet_router)  # Wallets, withdrawals, deposit webhook (public)
router.include_router(referral_router)
router.include_router(kyc_router)
router.include_router(notifications_router)
router.include_router(config_router)  # Public platform status
router.include_router(admin_router)  # Admin panel (is_admin only)
