# coding: utf-8
"""
Referral Commission Service

Tiering (bronze / silver / gold by active referrals) and the commission
paid to a referrer when a referred user's bot closes with profit.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, distinct
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from config.config import FRONTEND_URL
from config.referral_config import get_tier_by_referrals, get_tier_config
from src.database.models import (
    User,
    UserBot,
    Transaction,
    ReferralLevel,
    PositionStatus,
    TransactionType,
    TransactionStatus,
)
from src.services.ledger_service import LedgerService, make_tx_reference
from src.services.settings_service import SettingsService


def compute_tier(active_referral_count: int) -> ReferralLevel:
    """
    Tier for a number of active referrals

    bronze < 5, silver 5-14, gold >= 15
    """
    return ReferralLevel(get_tier_by_referrals(active_referral_count))


class ReferralCommissionService:
    """Referral tiers, commissions and referral stats"""

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[SettingsService] = None,
        ledger: Optional[LedgerService] = None,
    ):
        self.session = session
        self.settings = settings or SettingsService(session)
        self.ledger = ledger or LedgerService(session)

    async def count_active_referrals(self, referrer_id: int) -> int:
        """Referred users with at least one active bot"""
        stmt = (
            select(func.count(distinct(User.id)))
            .join(UserBot, UserBot.user_id == User.id)
            .where(
                User.referrer_id == referrer_id,
                UserBot.status == PositionStatus.ACTIVE.value,
            )
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def count_referrals(self, referrer_id: int) -> int:
        stmt = select(func.count(User.id)).where(User.referrer_id == referrer_id)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def commission_rate(self, tier: ReferralLevel) -> float:
        """Commission rate of a tier from current settings (bronze as fallback)"""
        settings = await self.settings.get()
        field = get_tier_config(tier.value)["settings_field"]
        return float(getattr(settings, field, settings.bronze_fee))

    async def apply_commission(
        self,
        referrer_id: int,
        currency: str,
        profit: float,
        position_id: int,
        source_user_id: Optional[int] = None,
        tier: Optional[ReferralLevel] = None,
    ) -> Optional[Transaction]:
        """
        Pay the referrer their share of a referred user's profit

        Without an explicit tier it is computed from the live active-referral
        count. Runs in the caller's unit of work (flush only).

        Args:
            referrer_id: User receiving the commission
            currency: Currency of the closed position
            profit: Profit realized by the referred user
            position_id: Closed position (for the tx reference)
            source_user_id: Referred user who closed the position
            tier: Referrer tier counted before the position was closed

        Returns:
            The referral_commission Transaction, or None when nothing is due
        """
        if profit <= 0:
            return None

        if tier is None:
            tier = compute_tier(await self.count_active_referrals(referrer_id))
        rate = await self.commission_rate(tier)
        commission = profit * rate

        if commission <= 0:
            logger.debug(f"No commission for referrer {referrer_id}: rate {rate} ({tier.value})")
            return None

        wallet = await self.ledger.get_or_create_wallet(referrer_id, currency)
        await self.ledger.credit(wallet.id, commission)
        transaction = await self.ledger.record_transaction(
            user_id=referrer_id,
            type=TransactionType.REFERRAL_COMMISSION,
            currency=currency,
            amount=commission,
            status=TransactionStatus.COMPLETED,
            tx_hash=make_tx_reference("ref_comm", position_id),
            source_user_id=source_user_id,
        )

        logger.info(
            f"Referral commission: referrer={referrer_id} tier={tier.value} "
            f"rate={rate} profit={profit} commission={commission} {currency}"
        )
        return transaction

    async def get_referral_info(self, user: User) -> Dict[str, Any]:
        """
        Referral dashboard data

        Refreshes the user's cached referral_level when it changed.
        """
        referral_count = await self.count_referrals(user.id)
        active_referrals = await self.count_active_referrals(user.id)
        total_earnings = await self.ledger.sum_transactions(
            TransactionType.REFERRAL_COMMISSION, user_id=user.id
        )

        tier = compute_tier(active_referrals)
        if user.referral_level != tier.value:
            logger.info(f"User {user.id} referral level {user.referral_level} -> {tier.value}")
            user.referral_level = tier.value
            await self.session.commit()

        return {
            "referral_code": user.referral_code,
            "referral_link": f"{FRONTEND_URL}?ref={user.referral_code}",
            "referral_level": tier.value,
            "referral_count": referral_count,
            "active_referrals": active_referrals,
            "total_earnings": total_earnings,
        }

    async def list_referrals(self, user: User) -> List[Dict[str, Any]]:
        """
        Users referred by `user`, whether they run a bot now, and the
        commission each of them has earned for `user`
        """
        stmt = select(User).where(User.referrer_id == user.id).order_by(User.created_at.desc())
        result = await self.session.execute(stmt)
        referrals = list(result.scalars().all())
        if not referrals:
            return []

        referral_ids = [referral.id for referral in referrals]

        active_stmt = (
            select(distinct(UserBot.user_id))
            .where(UserBot.user_id.in_(referral_ids), UserBot.status == PositionStatus.ACTIVE.value)
        )
        active_ids = set((await self.session.execute(active_stmt)).scalars().all())

        earnings_stmt = (
            select(Transaction.source_user_id, func.coalesce(func.sum(Transaction.amount), 0.0))
            .where(
                Transaction.user_id == user.id,
                Transaction.source_user_id.in_(referral_ids),
                Transaction.type == TransactionType.REFERRAL_COMMISSION.value,
                Transaction.status == TransactionStatus.COMPLETED.value,
            )
            .group_by(Transaction.source_user_id)
        )
        earnings = dict((await self.session.execute(earnings_stmt)).all())

        return [
            {
                "id": referral.id,
                "email": referral.email,
                "full_name": referral.full_name,
                "is_active": referral.id in active_ids,
                "total_earnings": float(earnings.get(referral.id, 0.0)),
                "joined_date": referral.created_at,
            }
            for referral in referrals
        ]
