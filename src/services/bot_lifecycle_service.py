# coding: utf-8
"""
Bot Lifecycle Service

Launch and stop of user bot instances (positions).

State machine: (none) --launch--> active --stop--> completed

Launch locks the investment out of the user's wallet. Stop simulates a
profit from the bot's configured monthly range, returns principal plus
profit to the wallet and pays the referrer's commission. Each operation
is one database transaction: on any failure nothing is persisted.
"""

import math
import random
from datetime import datetime, UTC
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from config.platform_config import PROFIT_PERIOD_DAYS
from src.core.exceptions import (
    BotUnavailable,
    InsufficientFunds,
    InvalidAmount,
    InvalidState,
    NotFound,
    PlatformDisabled,
)
from src.database.models import (
    Bot,
    User,
    UserBot,
    PositionStatus,
    TransactionType,
    TransactionStatus,
)
from src.services.bot_catalog import BotCatalog, parse_profit_range
from src.services.kyc_gate import KycAction, KycGate
from src.services.ledger_service import LedgerService, make_tx_reference, wallet_lock
from src.services.referral_service import ReferralCommissionService, compute_tier
from src.services.settings_service import SettingsService


SECONDS_PER_DAY = 86400


def _as_utc(moment: datetime) -> datetime:
    # SQLite returns naive datetimes
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def simulate_profit(
    investment: float,
    profit_range: str,
    started_at: datetime,
    now: datetime,
    roll: float,
) -> float:
    """
    Simulated profit of a stopped bot

    elapsed_days    = ceil(|now - started_at| / 1 day)
    time_adjustment = max(elapsed_days, 1) / 30
    rate            = min + roll * (max - min)
    profit          = investment * rate * time_adjustment

    Never negative: the range parser only yields non-negative rates.

    Args:
        investment: Locked amount
        profit_range: Bot's "<min>-<max>%" monthly range
        started_at: Launch time
        now: Stop time
        roll: Uniform random number in [0, 1)

    Returns:
        Profit in the position's currency
    """
    min_rate, max_rate = parse_profit_range(profit_range)

    elapsed_seconds = abs((_as_utc(now) - _as_utc(started_at)).total_seconds())
    elapsed_days = math.ceil(elapsed_seconds / SECONDS_PER_DAY)
    time_adjustment = max(elapsed_days, 1) / PROFIT_PERIOD_DAYS

    rate = min_rate + roll * (max_rate - min_rate)
    return investment * rate * time_adjustment


class BotLifecycleService:
    """Launch / stop of bot positions"""

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[SettingsService] = None,
        ledger: Optional[LedgerService] = None,
        catalog: Optional[BotCatalog] = None,
        commissions: Optional[ReferralCommissionService] = None,
        kyc_gate: Optional[KycGate] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[Callable[[], float]] = None,
    ):
        self.session = session
        self.settings = settings or SettingsService(session)
        self.ledger = ledger or LedgerService(session)
        self.catalog = catalog or BotCatalog(session)
        self.commissions = commissions or ReferralCommissionService(
            session, settings=self.settings, ledger=self.ledger
        )
        self.kyc_gate = kyc_gate or KycGate()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.rng = rng or random.random

    # ===========================
    # QUERIES
    # ===========================

    async def get_position(self, user_id: int, position_id: int) -> UserBot:
        """
        Get a position owned by the user

        Raises:
            NotFound: no such position for this user
        """
        stmt = (
            select(UserBot)
            .where(UserBot.id == position_id, UserBot.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        position = result.scalar_one_or_none()
        if position is None:
            raise NotFound("Bot instance not found")
        return position

    async def list_positions(
        self,
        user_id: int,
        status: Optional[PositionStatus] = None,
    ) -> List[Tuple[UserBot, Bot]]:
        """User's positions with their bot definitions, newest first"""
        stmt = (
            select(UserBot, Bot)
            .join(Bot, Bot.id == UserBot.bot_id)
            .where(UserBot.user_id == user_id)
            .order_by(UserBot.started_at.desc(), UserBot.id.desc())
        )
        if status is not None:
            stmt = stmt.where(UserBot.status == status.value)
        result = await self.session.execute(stmt)
        return [(position, bot) for position, bot in result.all()]

    async def find_expired_positions(self, now: Optional[datetime] = None) -> List[UserBot]:
        """Active positions whose max_duration_days has elapsed"""
        now = _as_utc(now or self.clock())
        stmt = select(UserBot).where(
            UserBot.status == PositionStatus.ACTIVE.value,
            UserBot.max_duration_days.is_not(None),
        )
        result = await self.session.execute(stmt)

        expired = []
        for position in result.scalars().all():
            age_days = (now - _as_utc(position.started_at)).total_seconds() / SECONDS_PER_DAY
            if age_days >= position.max_duration_days:
                expired.append(position)
        return expired

    # ===========================
    # LAUNCH
    # ===========================

    async def launch(
        self,
        user: User,
        bot_id: int,
        investment: float,
        currency: str,
        strategy: Optional[str] = None,
        stop_loss_percentage: Optional[float] = None,
        take_profit_percentage: Optional[float] = None,
        max_duration_days: Optional[int] = None,
    ) -> UserBot:
        """
        Launch a bot with an investment taken from the user's wallet

        Preconditions (first failure wins):
        1. bots globally enabled
        2. bot exists and is enabled
        3. KYC level allows launching
        4. investment > 0
        5. wallet balance covers the investment

        Raises:
            PlatformDisabled, BotUnavailable, KycRequired, InvalidAmount,
            InsufficientFunds

        Returns:
            The new active position
        """
        settings = await self.settings.get()
        if not settings.bots_enabled:
            raise PlatformDisabled()

        bot = await self.catalog.find(bot_id)
        if bot is None:
            raise BotUnavailable(missing=True)
        if not bot.enabled:
            raise BotUnavailable()

        self.kyc_gate.check(user, KycAction.LAUNCH_BOT)

        if (
            isinstance(investment, bool)
            or not isinstance(investment, (int, float))
            or not math.isfinite(investment)
            or investment <= 0
        ):
            raise InvalidAmount("Investment must be greater than 0")

        async with wallet_lock(user.id, currency):
            try:
                wallet = await self.ledger.get_wallet(user.id, currency, for_update=True)
                if wallet is None or wallet.balance < investment:
                    raise InsufficientFunds()

                await self.ledger.debit(wallet.id, investment)

                position = UserBot(
                    user_id=user.id,
                    bot_id=bot.id,
                    investment=investment,
                    profit=0.0,
                    currency=currency,
                    status=PositionStatus.ACTIVE.value,
                    strategy=strategy,
                    stop_loss_percentage=stop_loss_percentage,
                    take_profit_percentage=take_profit_percentage,
                    max_duration_days=max_duration_days,
                    started_at=self.clock(),
                )
                self.session.add(position)
                await self.session.flush()

                await self.ledger.record_transaction(
                    user_id=user.id,
                    type=TransactionType.BOT_INVESTMENT,
                    currency=currency,
                    amount=investment,
                    status=TransactionStatus.COMPLETED,
                    tx_hash=make_tx_reference("bot", position.id),
                )

                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        logger.info(
            f"Bot launched: position={position.id} user={user.id} bot={bot.id} "
            f"investment={investment} {currency}"
        )
        return position

    # ===========================
    # STOP
    # ===========================

    async def stop(self, user: User, position_id: int) -> Dict[str, Any]:
        """
        Stop an active bot and settle it

        Effects (one transaction):
        - position -> completed with simulated profit
        - wallet credited investment + profit
        - bot_return (investment) and, if profit > 0, bot_profit transactions
        - referrer commission if the user was referred and profit > 0

        Raises:
            NotFound: position missing or owned by someone else
            InvalidState: position already completed

        Returns:
            {id, status, investment, profit, total}
        """
        position = await self.get_position(user.id, position_id)
        if position.status != PositionStatus.ACTIVE.value:
            raise InvalidState("Bot is not active")

        bot = await self.catalog.find(position.bot_id)
        if bot is None:
            raise NotFound("Bot configuration not found")

        now = self.clock()
        profit = simulate_profit(
            investment=position.investment,
            profit_range=bot.profit_range,
            started_at=position.started_at,
            now=now,
            roll=self.rng(),
        )
        total = position.investment + profit

        async with wallet_lock(user.id, position.currency):
            try:
                # Referrer tier as of settlement start, the stopping user still counts as active
                referrer_tier = None
                if profit > 0 and user.referrer_id:
                    referrer_tier = compute_tier(
                        await self.commissions.count_active_referrals(user.referrer_id)
                    )

                # Conditional flip: a concurrent stop of the same position loses here
                stmt = (
                    update(UserBot)
                    .where(UserBot.id == position.id, UserBot.status == PositionStatus.ACTIVE.value)
                    .values(status=PositionStatus.COMPLETED.value, profit=profit, completed_at=now)
                    .execution_options(synchronize_session=False)
                )
                result = await self.session.execute(stmt)
                if result.rowcount == 0:
                    raise InvalidState("Bot is not active")

                wallet = await self.ledger.get_or_create_wallet(user.id, position.currency)
                await self.ledger.credit(wallet.id, total)

                await self.ledger.record_transaction(
                    user_id=user.id,
                    type=TransactionType.BOT_RETURN,
                    currency=position.currency,
                    amount=position.investment,
                    status=TransactionStatus.COMPLETED,
                    tx_hash=make_tx_reference("bot_return", position.id),
                )

                if profit > 0:
                    await self.ledger.record_transaction(
                        user_id=user.id,
                        type=TransactionType.BOT_PROFIT,
                        currency=position.currency,
                        amount=profit,
                        status=TransactionStatus.COMPLETED,
                        tx_hash=make_tx_reference("bot_profit", position.id),
                    )

                    if user.referrer_id:
                        await self.commissions.apply_commission(
                            referrer_id=user.referrer_id,
                            currency=position.currency,
                            profit=profit,
                            position_id=position.id,
                            source_user_id=user.id,
                            tier=referrer_tier,
                        )

                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        logger.info(
            f"Bot stopped: position={position.id} user={user.id} "
            f"investment={position.investment} profit={profit:.8f} {position.currency}"
        )

        return {
            "id": position.id,
            "status": PositionStatus.COMPLETED.value,
            "investment": position.investment,
            "profit": profit,
            "total": total,
        }
