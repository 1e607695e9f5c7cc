"""
Referral API Endpoints
Referral dashboard and list of referred users
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import get_current_user
from src.api.schemas import ReferralInfoResponse, ReferralResponse
from src.database.engine import get_session
from src.database.models import User
from src.services.referral_service import ReferralCommissionService


router = APIRouter(prefix="/referrals", tags=["referrals"])


@router.get("/info", response_model=ReferralInfoResponse)
async def get_referral_info(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Referral dashboard for current user

    Returns:
        {
            "referralCode": "AB12CD34",
            "referralLink": "https://app.example.com?ref=AB12CD34",
            "referralLevel": "silver",
            "referralCount": 9,
            "activeReferrals": 6,
            "totalEarnings": 12.5
        }
    """
    return await ReferralCommissionService(session).get_referral_info(user)


@router.get("", response_model=List[ReferralResponse])
async def list_referrals(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Users who registered with the current user's code"""
    return await ReferralCommissionService(session).list_referrals(user)
