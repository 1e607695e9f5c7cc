"""
Tests for bot launch / stop settlement
Covers balance effects, transaction trail, precondition order and concurrency
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.exceptions import (
    BotUnavailable,
    InsufficientFunds,
    InvalidAmount,
    InvalidState,
    KycRequired,
    NotFound,
    PlatformDisabled,
)
from src.database.models import Transaction, UserBot
from src.services.bot_lifecycle_service import BotLifecycleService, simulate_profit
from src.services.ledger_service import LedgerService
from src.services.referral_service import ReferralCommissionService
from tests.helpers import FIXED_NOW, FakeClock, fund_wallet, make_bot, make_user, seed_settings


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================


def lifecycle_for(session, clock, roll: float = 0.5) -> BotLifecycleService:
    return BotLifecycleService(session, clock=clock, rng=lambda: roll)


async def transactions_of(session, user_id: int):
    result = await session.execute(
        select(Transaction).where(Transaction.user_id == user_id).order_by(Transaction.id)
    )
    return list(result.scalars().all())


async def balance_of(session, user_id: int, currency: str = "USDT") -> float:
    wallet = await LedgerService(session).get_wallet(user_id, currency)
    return wallet.balance if wallet else 0.0


class FailingCommissions(ReferralCommissionService):
    """Credits the referrer, then fails before the stop commits"""

    async def apply_commission(self, *args, **kwargs):
        await super().apply_commission(*args, **kwargs)
        raise RuntimeError("commission ledger unavailable")


# ============================================================================
# PROFIT SIMULATION
# ============================================================================


def test_profit_for_full_month():
    started = FIXED_NOW
    assert simulate_profit(100, "10-10%", started, started + timedelta(days=30), 0.3) == pytest.approx(10)


def test_profit_partial_days_round_up():
    started = FIXED_NOW
    # 2 days and 1 second -> 3 days
    now = started + timedelta(days=2, seconds=1)
    assert simulate_profit(300, "10-10%", started, now, 0.0) == pytest.approx(300 * 0.10 * 3 / 30)


def test_profit_minimum_one_day():
    started = FIXED_NOW
    assert simulate_profit(300, "10-10%", started, started, 0.0) == pytest.approx(1.0)


def test_profit_interpolates_range():
    started = FIXED_NOW
    now = started + timedelta(days=30)
    assert simulate_profit(100, "8-16%", started, now, 0.0) == pytest.approx(8)
    assert simulate_profit(100, "8-16%", started, now, 0.5) == pytest.approx(12)


def test_profit_never_negative_for_malformed_range():
    started = FIXED_NOW
    assert simulate_profit(100, "n/a", started, started + timedelta(days=10), 0.9) == 0.0


# ============================================================================
# LAUNCH / STOP SCENARIOS
# ============================================================================


@pytest.mark.asyncio
async def test_launch_and_stop_after_thirty_days(db_session, clock):
    """Wallet 1000, invest 100 at 10%, stop after 30 days -> +10"""
    user = await make_user(db_session)
    bot = await make_bot(db_session, profit_range="10-10%")
    await fund_wallet(db_session, user.id, 1000)
    service = lifecycle_for(db_session, clock)

    position = await service.launch(user, bot.id, 100, "USDT")

    assert position.status == "active"
    assert position.profit == 0
    assert await balance_of(db_session, user.id) == pytest.approx(900)
    transactions = await transactions_of(db_session, user.id)
    assert [(t.type, t.amount) for t in transactions] == [("bot_investment", 100)]
    assert transactions[0].tx_hash.startswith(f"bot_{position.id}_")

    clock.advance(days=30)
    result = await service.stop(user, position.id)

    assert result["status"] == "completed"
    assert result["profit"] == pytest.approx(10)
    assert result["total"] == pytest.approx(110)
    assert await balance_of(db_session, user.id) == pytest.approx(1010)

    transactions = await transactions_of(db_session, user.id)
    assert [(t.type, round(t.amount, 8)) for t in transactions] == [
        ("bot_investment", 100),
        ("bot_return", 100),
        ("bot_profit", 10),
    ]

    stored = await service.get_position(user.id, position.id)
    assert stored.status == "completed"
    assert stored.profit == pytest.approx(10)
    assert stored.completed_at is not None


@pytest.mark.asyncio
async def test_stop_pays_referrer_silver_commission(db_session, clock):
    """Referrer with 6 active referrals is silver (2%) -> 10 * 0.02"""
    referrer = await make_user(db_session)
    bot = await make_bot(db_session, profit_range="10-10%")
    service = lifecycle_for(db_session, clock)

    for _ in range(6):
        other = await make_user(db_session, referrer_id=referrer.id)
        await fund_wallet(db_session, other.id, 10)
        await service.launch(other, bot.id, 10, "USDT")

    user = await make_user(db_session, referrer_id=referrer.id)
    await fund_wallet(db_session, user.id, 1000)
    position = await service.launch(user, bot.id, 100, "USDT")

    clock.advance(days=30)
    await service.stop(user, position.id)

    assert await balance_of(db_session, referrer.id) == pytest.approx(0.20)
    commissions = await transactions_of(db_session, referrer.id)
    assert len(commissions) == 1
    assert commissions[0].type == "referral_commission"
    assert commissions[0].amount == pytest.approx(0.20)
    assert commissions[0].source_user_id == user.id


@pytest.mark.asyncio
async def test_stopping_user_counts_toward_referrer_tier(db_session, clock):
    """4 other active referrals plus the stopping user make 5: silver, not bronze"""
    referrer = await make_user(db_session)
    bot = await make_bot(db_session, profit_range="10-10%")
    service = lifecycle_for(db_session, clock)

    for _ in range(4):
        other = await make_user(db_session, referrer_id=referrer.id)
        await fund_wallet(db_session, other.id, 10)
        await service.launch(other, bot.id, 10, "USDT")

    user = await make_user(db_session, referrer_id=referrer.id)
    await fund_wallet(db_session, user.id, 1000)
    position = await service.launch(user, bot.id, 100, "USDT")

    clock.advance(days=30)
    await service.stop(user, position.id)

    assert await balance_of(db_session, referrer.id) == pytest.approx(0.20)


@pytest.mark.asyncio
async def test_stop_is_atomic_when_commission_fails(db_session, clock):
    referrer = await make_user(db_session)
    referrer_id = referrer.id
    bot = await make_bot(db_session, profit_range="10-10%")
    user = await make_user(db_session, referrer_id=referrer_id)
    user_id = user.id
    await fund_wallet(db_session, user_id, 1000)
    position = await lifecycle_for(db_session, clock).launch(user, bot.id, 100, "USDT")
    position_id = position.id

    clock.advance(days=30)
    service = BotLifecycleService(
        db_session, clock=clock, rng=lambda: 0.5, commissions=FailingCommissions(db_session)
    )
    with pytest.raises(RuntimeError):
        await service.stop(user, position_id)

    assert await balance_of(db_session, user_id) == pytest.approx(900)
    assert await LedgerService(db_session).get_wallet(referrer_id, "USDT") is None
    assert (await service.get_position(user_id, position_id)).status == "active"
    assert [t.type for t in await transactions_of(db_session, user_id)] == ["bot_investment"]


@pytest.mark.asyncio
async def test_stop_without_referrer_pays_no_commission(db_session, clock):
    user = await make_user(db_session)
    bot = await make_bot(db_session)
    await fund_wallet(db_session, user.id, 100)
    service = lifecycle_for(db_session, clock)

    position = await service.launch(user, bot.id, 100, "USDT")
    await service.stop(user, position.id)

    result = await db_session.execute(
        select(Transaction).where(Transaction.type == "referral_commission")
    )
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_launch_with_insufficient_balance(db_session, clock):
    user = await make_user(db_session)
    user_id = user.id
    bot = await make_bot(db_session)
    await fund_wallet(db_session, user.id, 100)

    with pytest.raises(InsufficientFunds):
        await lifecycle_for(db_session, clock).launch(user, bot.id, 500, "USDT")

    # the failed launch rolled back and expired `user`
    assert await balance_of(db_session, user_id) == 100
    assert await transactions_of(db_session, user_id) == []
    positions = (await db_session.execute(select(UserBot))).scalars().all()
    assert positions == []


@pytest.mark.asyncio
async def test_launch_without_wallet(db_session, clock):
    user = await make_user(db_session)
    bot = await make_bot(db_session)

    with pytest.raises(InsufficientFunds):
        await lifecycle_for(db_session, clock).launch(user, bot.id, 5, "BTC")


@pytest.mark.asyncio
async def test_launch_requires_kyc(db_session, clock):
    user = await make_user(db_session, kyc_level=0)
    bot = await make_bot(db_session)
    await fund_wallet(db_session, user.id, 100)

    with pytest.raises(KycRequired) as exc_info:
        await lifecycle_for(db_session, clock).launch(user, bot.id, 50, "USDT")

    assert exc_info.value.to_dict()["requiredLevel"] == 1
    assert exc_info.value.to_dict()["currentLevel"] == 0
    assert await balance_of(db_session, user.id) == 100
    assert await transactions_of(db_session, user.id) == []


@pytest.mark.asyncio
async def test_stop_twice_fails_without_double_credit(db_session, clock):
    user = await make_user(db_session)
    bot = await make_bot(db_session)
    await fund_wallet(db_session, user.id, 100)
    service = lifecycle_for(db_session, clock)

    position = await service.launch(user, bot.id, 100, "USDT")
    clock.advance(days=30)
    await service.stop(user, position.id)
    balance = await balance_of(db_session, user.id)

    with pytest.raises(InvalidState, match="not active"):
        await service.stop(user, position.id)

    assert await balance_of(db_session, user.id) == balance
    assert len(await transactions_of(db_session, user.id)) == 3


@pytest.mark.asyncio
async def test_stop_someone_elses_position(db_session, clock):
    owner = await make_user(db_session)
    intruder = await make_user(db_session)
    bot = await make_bot(db_session)
    await fund_wallet(db_session, owner.id, 100)
    service = lifecycle_for(db_session, clock)

    position = await service.launch(owner, bot.id, 100, "USDT")

    with pytest.raises(NotFound):
        await service.stop(intruder, position.id)


@pytest.mark.asyncio
async def test_stop_works_while_bots_are_disabled(db_session, clock):
    user = await make_user(db_session)
    bot = await make_bot(db_session)
    await fund_wallet(db_session, user.id, 100)
    service = lifecycle_for(db_session, clock)
    position = await service.launch(user, bot.id, 100, "USDT")

    await seed_settings(db_session, bots_enabled=False)
    await service.catalog.set_enabled(bot.id, False)
    result = await service.stop(user, position.id)

    assert result["status"] == "completed"


# ============================================================================
# PRECONDITION ORDER
# ============================================================================


@pytest.mark.asyncio
async def test_bots_disabled_wins_over_everything(db_session, clock):
    user = await make_user(db_session, kyc_level=0)
    await seed_settings(db_session, bots_enabled=False)

    with pytest.raises(PlatformDisabled):
        await lifecycle_for(db_session, clock).launch(user, 12345, -1, "USDT")


@pytest.mark.asyncio
async def test_missing_bot_is_404(db_session, clock):
    user = await make_user(db_session, kyc_level=0)

    with pytest.raises(BotUnavailable) as exc_info:
        await lifecycle_for(db_session, clock).launch(user, 12345, -1, "USDT")

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_disabled_bot_is_403_before_kyc(db_session, clock):
    user = await make_user(db_session, kyc_level=0)
    bot = await make_bot(db_session, enabled=False)

    with pytest.raises(BotUnavailable) as exc_info:
        await lifecycle_for(db_session, clock).launch(user, bot.id, -1, "USDT")

    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_kyc_checked_before_amount(db_session, clock):
    user = await make_user(db_session, kyc_level=0)
    bot = await make_bot(db_session)

    with pytest.raises(KycRequired):
        await lifecycle_for(db_session, clock).launch(user, bot.id, 0, "USDT")


@pytest.mark.parametrize("investment", [0, -5, float("nan"), float("inf")])
@pytest.mark.asyncio
async def test_invalid_investment(db_session, clock, investment):
    user = await make_user(db_session)
    bot = await make_bot(db_session)
    await fund_wallet(db_session, user.id, 100)

    with pytest.raises(InvalidAmount):
        await lifecycle_for(db_session, clock).launch(user, bot.id, investment, "USDT")


# ============================================================================
# AUTO-STOP
# ============================================================================


@pytest.mark.asyncio
async def test_find_expired_positions(db_session, clock):
    user = await make_user(db_session)
    bot = await make_bot(db_session)
    await fund_wallet(db_session, user.id, 100)
    service = lifecycle_for(db_session, clock)

    short = await service.launch(user, bot.id, 10, "USDT", max_duration_days=7)
    await service.launch(user, bot.id, 10, "USDT", max_duration_days=30)
    await service.launch(user, bot.id, 10, "USDT")

    clock.advance(days=6)
    assert await service.find_expired_positions() == []

    clock.advance(days=1)
    assert [p.id for p in await service.find_expired_positions()] == [short.id]


# ============================================================================
# CONCURRENCY
# ============================================================================


@pytest.mark.asyncio
async def test_concurrent_launches_only_one_wins(file_db_engine):
    """Two launches of 80 against a balance of 100: exactly one succeeds"""
    session_maker = async_sessionmaker(file_db_engine, class_=AsyncSession, expire_on_commit=False)

    async with session_maker() as session:
        user = await make_user(session)
        bot = await make_bot(session)
        await fund_wallet(session, user.id, 100)
        await seed_settings(session)

    async def launch():
        async with session_maker() as session:
            service = BotLifecycleService(session, clock=FakeClock(), rng=lambda: 0.5)
            return await service.launch(user, bot.id, 80, "USDT")

    results = await asyncio.gather(launch(), launch(), return_exceptions=True)

    launched = [r for r in results if isinstance(r, UserBot)]
    failed = [r for r in results if isinstance(r, InsufficientFunds)]
    assert len(launched) == 1
    assert len(failed) == 1

    async with session_maker() as session:
        assert await balance_of(session, user.id) == pytest.approx(20)
        assert len(await transactions_of(session, user.id)) == 1


@pytest.mark.asyncio
async def test_concurrent_stops_credit_once(file_db_engine):
    session_maker = async_sessionmaker(file_db_engine, class_=AsyncSession, expire_on_commit=False)

    async with session_maker() as session:
        user = await make_user(session)
        bot = await make_bot(session)
        await fund_wallet(session, user.id, 100)
        await seed_settings(session)
        position = await BotLifecycleService(session, clock=FakeClock(), rng=lambda: 0.5).launch(
            user, bot.id, 100, "USDT"
        )

    async def stop():
        async with session_maker() as session:
            clock = FakeClock(FIXED_NOW + timedelta(days=30))
            service = BotLifecycleService(session, clock=clock, rng=lambda: 0.5)
            return await service.stop(user, position.id)

    results = await asyncio.gather(stop(), stop(), return_exceptions=True)

    assert len([r for r in results if isinstance(r, dict)]) == 1
    assert len([r for r in results if isinstance(r, InvalidState)]) == 1

    async with session_maker() as session:
        assert await balance_of(session, user.id) == pytest.approx(110)
