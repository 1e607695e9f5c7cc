"""
Bots API Endpoints
Catalog browsing and launch/stop of the user's bot positions
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import get_current_user
from src.api.schemas import (
    BotResponse,
    LaunchBotRequest,
    LaunchBotResponse,
    PositionResponse,
    StopBotResponse,
)
from src.core.exceptions import BotUnavailable, InvalidSetting, PlatformDisabled
from src.database.engine import get_session
from src.database.models import PositionStatus, User
from src.services.bot_catalog import BotCatalog
from src.services.bot_lifecycle_service import BotLifecycleService
from src.services.settings_service import SettingsService


router = APIRouter(tags=["bots"])


@router.get("/bots", response_model=List[BotResponse])
async def list_bots(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Enabled bots of the catalog

    Raises:
        403: bots are globally disabled
    """
    settings = await SettingsService(session).get()
    if not settings.bots_enabled:
        raise PlatformDisabled()

    return await BotCatalog(session).list_enabled()


@router.get("/bots/{bot_id}", response_model=BotResponse)
async def get_bot(
    bot_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Single catalog entry (disabled bots are hidden from users)"""
    bot = await BotCatalog(session).find(bot_id)
    if bot is None or (not bot.enabled and not user.is_admin):
        raise BotUnavailable(missing=True)
    return bot


@router.get("/user/bots", response_model=List[PositionResponse])
async def list_user_bots(
    status_filter: Optional[PositionStatus] = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    User's bot positions (active and completed), newest first

    Query params:
        status: active | completed
    """
    positions = await BotLifecycleService(session).list_positions(user.id, status_filter)

    return [
        PositionResponse(
            id=position.id,
            bot_id=bot.id,
            name=bot.name,
            description=bot.description,
            icon=bot.icon,
            risk_level=bot.risk_level,
            profit_range=bot.profit_range,
            investment=position.investment,
            profit=position.profit,
            currency=position.currency,
            status=position.status,
            strategy=position.strategy,
            stop_loss_percentage=position.stop_loss_percentage,
            take_profit_percentage=position.take_profit_percentage,
            max_duration_days=position.max_duration_days,
            started_at=position.started_at,
            completed_at=position.completed_at,
        )
        for position, bot in positions
    ]


@router.post("/bots/launch", response_model=LaunchBotResponse, status_code=status.HTTP_201_CREATED)
async def launch_bot(
    payload: LaunchBotRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Launch a bot with an investment from the user's wallet

    Raises:
        403: bots disabled, bot disabled or KYC level too low
        404: unknown bot
        400: investment <= 0 or insufficient balance
    """
    currency = payload.currency.strip()
    if not currency:
        raise InvalidSetting("Currency is required")

    position = await BotLifecycleService(session).launch(
        user,
        bot_id=payload.bot_id,
        investment=payload.investment,
        currency=currency,
        strategy=payload.strategy,
        stop_loss_percentage=payload.stop_loss_percentage,
        take_profit_percentage=payload.take_profit_percentage,
        max_duration_days=payload.max_duration_days,
    )
    return position


@router.post("/bots/{position_id}/stop", response_model=StopBotResponse)
async def stop_bot(
    position_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Stop an active bot position and settle it

    Returns:
        {id, status: "completed", investment, profit, total}

    Raises:
        404: position not found (or owned by another user)
        400: position already completed
    """
    return await BotLifecycleService(session).stop(user, position_id)
