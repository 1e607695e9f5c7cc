# coding: utf-8
"""
Admin dashboard statistics computed from the ledger
"""

from typing import Any, Dict

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.models import (
    User,
    UserBot,
    Wallet,
    PositionStatus,
    TransactionType,
    TransactionStatus,
)
from src.services.ledger_service import LedgerService


async def get_platform_stats(session: AsyncSession) -> Dict[str, Any]:
    """
    Headline numbers for the admin dashboard

    Balances are summed nominally across currencies.
    """
    total_users = (await session.execute(select(func.count(User.id)))).scalar_one()
    blocked_users = (
        await session.execute(select(func.count(User.id)).where(User.is_blocked.is_(True)))
    ).scalar_one()
    total_bots = (await session.execute(select(func.count(UserBot.id)))).scalar_one()
    active_bots = (
        await session.execute(
            select(func.count(UserBot.id)).where(UserBot.status == PositionStatus.ACTIVE.value)
        )
    ).scalar_one()
    total_balance = (
        await session.execute(select(func.coalesce(func.sum(Wallet.balance), 0.0)))
    ).scalar_one()

    ledger = LedgerService(session)
    withdrawal_fees = await ledger.sum_transactions(TransactionType.WITHDRAWAL, column="fee")

    return {
        "total_users": int(total_users),
        "active_users": int(total_users - blocked_users),
        "total_bots": int(total_bots),
        "active_bots": int(active_bots),
        "total_balance": float(total_balance),
        "total_profit": withdrawal_fees,
    }


async def get_profit_breakdown(session: AsyncSession) -> Dict[str, Any]:
    """
    Platform income and payouts

    - withdrawal_fees: fees kept from completed withdrawals (income)
    - bot_profits_paid: simulated profit credited to users (cost)
    - referral_commissions_paid: commissions credited to referrers (cost)
    """
    ledger = LedgerService(session)

    withdrawal_fees = await ledger.sum_transactions(TransactionType.WITHDRAWAL, column="fee")
    pending_withdrawal_fees = await ledger.sum_transactions(
        TransactionType.WITHDRAWAL, status=TransactionStatus.PENDING, column="fee"
    )
    bot_profits = await ledger.sum_transactions(TransactionType.BOT_PROFIT)
    commissions = await ledger.sum_transactions(TransactionType.REFERRAL_COMMISSION)

    return {
        "withdrawal_fees": withdrawal_fees,
        "pending_withdrawal_fees": pending_withdrawal_fees,
        "bot_profits_paid": bot_profits,
        "referral_commissions_paid": commissions,
        "net": withdrawal_fees - bot_profits - commissions,
    }
