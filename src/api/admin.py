"""
Admin API

Platform settings, bot catalog management, users, notifications,
KYC review and ledger statistics. Every endpoint requires is_admin.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from src.api.auth import require_admin
from src.api.schemas import BotResponse, CamelModel, KycDocumentResponse, NotificationResponse
from src.core.exceptions import InvalidState, NotFound
from src.database.crud import (
    create_notification,
    get_active_bot_counts,
    get_total_balances,
    get_user_by_id,
    list_kyc_documents,
    list_users,
    set_user_blocked,
)
from src.database.engine import get_session
from src.database.models import KycStatus, NotificationType, User
from src.services.admin_stats_service import get_platform_stats, get_profit_breakdown
from src.services.bot_catalog import BotCatalog
from src.services.kyc_service import KycService
from src.services.settings_service import SettingsService


router = APIRouter(prefix="/admin", tags=["admin"])


# ===========================
# REQUEST/RESPONSE MODELS
# ===========================


class SettingsResponse(CamelModel):
    withdrawal_fee: float
    bronze_fee: float
    silver_fee: float
    gold_fee: float
    maintenance_mode: bool
    bots_enabled: bool
    updated_at: datetime


class ToggleRequest(CamelModel):
    """Request model for on/off switches"""
    value: bool


class CommissionsRequest(CamelModel):
    """Fee rates as fractions (0.05 = 5%), range checked by the settings service"""
    withdrawal_fee: Optional[float] = None
    bronze_fee: Optional[float] = None
    silver_fee: Optional[float] = None
    gold_fee: Optional[float] = None


class BotCreateRequest(CamelModel):
    name: str
    description: str = ""
    profit_range: str
    risk_level: str
    icon: Optional[str] = None
    enabled: bool = True


class BotUpdateRequest(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    profit_range: Optional[str] = None
    risk_level: Optional[str] = None
    icon: Optional[str] = None


class AdminUserResponse(CamelModel):
    id: int
    email: str
    full_name: Optional[str] = None
    country: Optional[str] = None
    is_admin: bool
    is_blocked: bool
    kyc_level: int
    referral_level: str
    active_bots_count: int
    total_balance: float
    created_at: datetime


class BlockRequest(CamelModel):
    blocked: bool


class NotificationRequest(CamelModel):
    message: str


class KycRejectRequest(CamelModel):
    reason: str


class StatsResponse(CamelModel):
    total_users: int
    active_users: int
    total_bots: int
    active_bots: int
    total_balance: float
    total_profit: float


class ProfitsResponse(CamelModel):
    withdrawal_fees: float
    pending_withdrawal_fees: float
    bot_profits_paid: float
    referral_commissions_paid: float
    net: float


# ===========================
# SETTINGS
# ===========================


@router.get("/settings", response_model=SettingsResponse)
async def get_settings(
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await SettingsService(session).get()


@router.post("/settings/maintenance", response_model=SettingsResponse)
async def set_maintenance(
    request: ToggleRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Turn maintenance mode on/off"""
    logger.info(f"Admin {admin.id} set maintenance_mode={request.value}")
    return await SettingsService(session).update({"maintenance_mode": request.value})


@router.post("/settings/bots-enabled", response_model=SettingsResponse)
async def set_bots_enabled(
    request: ToggleRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """
    Globally enable/disable bots

    Disabled: catalog hidden and launches refused. Stopping running
    positions keeps working.
    """
    logger.info(f"Admin {admin.id} set bots_enabled={request.value}")
    return await SettingsService(session).update({"bots_enabled": request.value})


@router.post("/settings/commissions", response_model=SettingsResponse)
async def set_commissions(
    request: CommissionsRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """
    Update fee rates (only the fields sent)

    Raises:
        400: rate outside [0, 1]
    """
    changes = request.model_dump(exclude_none=True)
    logger.info(f"Admin {admin.id} updated commissions: {changes}")
    return await SettingsService(session).update(changes)


# ===========================
# STATISTICS
# ===========================


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await get_platform_stats(session)


@router.get("/profits", response_model=ProfitsResponse)
async def get_profits(
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Fee income vs. simulated profit and commission payouts"""
    return await get_profit_breakdown(session)


# ===========================
# BOTS
# ===========================


@router.get("/bots", response_model=List[BotResponse])
async def list_all_bots(
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """All bots including disabled ones"""
    return await BotCatalog(session).list_all()


@router.post("/bots", response_model=BotResponse, status_code=status.HTTP_201_CREATED)
async def create_bot(
    request: BotCreateRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await BotCatalog(session).create(request.model_dump())


@router.patch("/bots/{bot_id}", response_model=BotResponse)
async def update_bot(
    bot_id: int,
    request: BotUpdateRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await BotCatalog(session).update(bot_id, request.model_dump(exclude_none=True))


@router.patch("/bots/{bot_id}/toggle", response_model=BotResponse)
async def toggle_bot(
    bot_id: int,
    request: ToggleRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Enable/disable a single bot (running positions are unaffected)"""
    return await BotCatalog(session).set_enabled(bot_id, request.value)


@router.delete("/bots/{bot_id}")
async def delete_bot(
    bot_id: int,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Delete a bot that was never used

    Raises:
        400: bot has active or past positions (disable it instead)
    """
    await BotCatalog(session).delete(bot_id)
    return {"success": True}


# ===========================
# USERS
# ===========================


@router.get("/users", response_model=List[AdminUserResponse])
async def get_users(
    search: Optional[str] = Query(None, max_length=100),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """
    Users with their active bot count and total balance

    Query params:
        search: Substring of email or name
        limit: Page size (default: 100)
        offset: Page offset
    """
    users = await list_users(session, search=search, limit=limit, offset=offset)
    user_ids = [u.id for u in users]
    bot_counts = await get_active_bot_counts(session, user_ids)
    balances = await get_total_balances(session, user_ids)

    return [
        AdminUserResponse(
            id=u.id,
            email=u.email,
            full_name=u.full_name,
            country=u.country,
            is_admin=u.is_admin,
            is_blocked=u.is_blocked,
            kyc_level=u.kyc_level,
            referral_level=u.referral_level,
            active_bots_count=bot_counts.get(u.id, 0),
            total_balance=balances.get(u.id, 0.0),
            created_at=u.created_at,
        )
        for u in users
    ]


@router.post("/users/{user_id}/block")
async def block_user(
    user_id: int,
    request: BlockRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Block or unblock a user (admin rights are left untouched)"""
    if user_id == admin.id:
        raise InvalidState("You cannot block yourself")

    user = await get_user_by_id(session, user_id)
    if user is None:
        raise NotFound("User not found")

    user = await set_user_blocked(session, user, request.blocked)
    logger.info(f"Admin {admin.id} set is_blocked={request.blocked} for user {user_id}")
    return {"success": True, "userId": user.id, "isBlocked": user.is_blocked}


# ===========================
# NOTIFICATIONS
# ===========================


@router.post(
    "/users/{user_id}/notification",
    response_model=NotificationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def notify_user(
    user_id: int,
    request: NotificationRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Personal notification"""
    if await get_user_by_id(session, user_id) is None:
        raise NotFound("User not found")
    if not request.message.strip():
        raise InvalidState("Message is required")

    notification = await create_notification(
        session, request.message.strip(), user_id=user_id, notification_type=NotificationType.PERSONAL
    )
    await session.commit()
    return notification


@router.post("/notifications", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def notify_all(
    request: NotificationRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Global notification shown to every user"""
    if not request.message.strip():
        raise InvalidState("Message is required")

    notification = await create_notification(session, request.message.strip())
    await session.commit()
    return notification


# ===========================
# KYC REVIEW
# ===========================


@router.get("/kyc", response_model=List[KycDocumentResponse])
async def list_kyc(
    status_filter: Optional[KycStatus] = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Submitted documents, optionally filtered by status"""
    return await list_kyc_documents(session, status_filter.value if status_filter else None)


@router.post("/kyc/{document_id}/approve", response_model=KycDocumentResponse)
async def approve_kyc(
    document_id: int,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    logger.info(f"Admin {admin.id} approving KYC document {document_id}")
    return await KycService(session).approve(document_id)


@router.post("/kyc/{document_id}/reject", response_model=KycDocumentResponse)
async def reject_kyc(
    document_id: int,
    request: KycRejectRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    logger.info(f"Admin {admin.id} rejecting KYC document {document_id}")
    return await KycService(session).reject(document_id, request.reason)
