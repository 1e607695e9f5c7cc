"""
Tests for referral tiers and commissions
"""

import pytest

from src.database.models import ReferralLevel, UserBot
from src.services.bot_lifecycle_service import BotLifecycleService
from src.services.referral_service import ReferralCommissionService, compute_tier
from tests.helpers import fund_wallet, make_bot, make_user, seed_settings


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================


async def add_referrals(session, referrer, bot, active: int, idle: int = 0):
    """Referred users, `active` of them with a running bot"""
    users = []
    for i in range(active + idle):
        user = await make_user(session, referrer_id=referrer.id)
        if i < active:
            session.add(UserBot(user_id=user.id, bot_id=bot.id, investment=1, currency="USDT", status="active"))
        users.append(user)
    await session.commit()
    return users


# ============================================================================
# TIERS
# ============================================================================


@pytest.mark.parametrize(
    "count,tier",
    [
        (0, ReferralLevel.BRONZE),
        (4, ReferralLevel.BRONZE),
        (5, ReferralLevel.SILVER),
        (14, ReferralLevel.SILVER),
        (15, ReferralLevel.GOLD),
        (100, ReferralLevel.GOLD),
    ],
)
def test_compute_tier(count, tier):
    assert compute_tier(count) == tier


@pytest.mark.asyncio
async def test_only_referrals_with_running_bots_are_active(db_session):
    referrer = await make_user(db_session)
    bot = await make_bot(db_session)
    await add_referrals(db_session, referrer, bot, active=3, idle=2)
    service = ReferralCommissionService(db_session)

    assert await service.count_referrals(referrer.id) == 5
    assert await service.count_active_referrals(referrer.id) == 3


@pytest.mark.asyncio
async def test_user_with_two_bots_counts_once(db_session):
    referrer = await make_user(db_session)
    bot = await make_bot(db_session)
    (user,) = await add_referrals(db_session, referrer, bot, active=1)
    db_session.add(UserBot(user_id=user.id, bot_id=bot.id, investment=1, currency="USDT", status="active"))
    await db_session.commit()

    assert await ReferralCommissionService(db_session).count_active_referrals(referrer.id) == 1


# ============================================================================
# COMMISSIONS
# ============================================================================


@pytest.mark.asyncio
async def test_bronze_commission(db_session):
    referrer = await make_user(db_session)
    source = await make_user(db_session, referrer_id=referrer.id)
    service = ReferralCommissionService(db_session)

    transaction = await service.apply_commission(referrer.id, "USDT", 50, position_id=1, source_user_id=source.id)
    await db_session.commit()

    assert transaction.amount == pytest.approx(0.5)
    assert transaction.tx_hash.startswith("ref_comm_1_")
    assert (await service.ledger.get_wallet(referrer.id, "USDT")).balance == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_gold_commission_uses_current_settings(db_session):
    referrer = await make_user(db_session)
    bot = await make_bot(db_session)
    await add_referrals(db_session, referrer, bot, active=15)
    await seed_settings(db_session, gold_fee=0.1)

    transaction = await ReferralCommissionService(db_session).apply_commission(
        referrer.id, "BTC", 2, position_id=7
    )

    assert transaction.amount == pytest.approx(0.2)
    assert transaction.currency == "BTC"


@pytest.mark.asyncio
async def test_no_commission_for_zero_profit_or_rate(db_session):
    referrer = await make_user(db_session)
    service = ReferralCommissionService(db_session)

    assert await service.apply_commission(referrer.id, "USDT", 0, position_id=1) is None

    await seed_settings(db_session, bronze_fee=0)
    assert await service.apply_commission(referrer.id, "USDT", 10, position_id=1) is None
    assert await service.ledger.get_wallet(referrer.id, "USDT") is None


@pytest.mark.asyncio
async def test_commission_uses_tier_given_by_caller(db_session):
    """A tier counted by the caller wins over the live count"""
    referrer = await make_user(db_session)
    service = ReferralCommissionService(db_session)

    transaction = await service.apply_commission(
        referrer.id, "USDT", 10, position_id=3, tier=ReferralLevel.SILVER
    )

    assert await service.count_active_referrals(referrer.id) == 0
    assert transaction.amount == pytest.approx(0.2)


# ============================================================================
# REFERRAL DASHBOARD
# ============================================================================


@pytest.mark.asyncio
async def test_referral_info_refreshes_level(db_session):
    referrer = await make_user(db_session)
    bot = await make_bot(db_session)
    await add_referrals(db_session, referrer, bot, active=5, idle=1)

    info = await ReferralCommissionService(db_session).get_referral_info(referrer)

    assert info["referral_code"] == referrer.referral_code
    assert info["referral_link"].endswith(f"?ref={referrer.referral_code}")
    assert info["referral_level"] == "silver"
    assert info["referral_count"] == 6
    assert info["active_referrals"] == 5
    assert info["total_earnings"] == 0.0
    assert referrer.referral_level == "silver"


@pytest.mark.asyncio
async def test_list_referrals_earnings_per_referral(db_session, clock):
    referrer = await make_user(db_session)
    first = await make_user(db_session, referrer_id=referrer.id)
    second = await make_user(db_session, referrer_id=referrer.id)
    bot = await make_bot(db_session, profit_range="10-10%")
    await fund_wallet(db_session, first.id, 100)
    service = BotLifecycleService(db_session, clock=clock, rng=lambda: 0.0)

    position = await service.launch(first, bot.id, 100, "USDT")
    clock.advance(days=30)
    await service.stop(first, position.id)

    referrals = await ReferralCommissionService(db_session).list_referrals(referrer)
    by_id = {r["id"]: r for r in referrals}

    # 10 profit * 1% bronze
    assert by_id[first.id]["total_earnings"] == pytest.approx(0.1)
    assert by_id[second.id]["total_earnings"] == 0.0
    assert by_id[first.id]["is_active"] is False
    assert by_id[second.id]["email"] == second.email
