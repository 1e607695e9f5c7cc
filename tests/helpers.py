"""
Test data factories shared by the test modules
"""

import itertools
from datetime import datetime, timedelta, UTC
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.database.crud import create_user
from src.database.models import Bot, User
from src.services.ledger_service import LedgerService
from src.services.settings_service import SettingsService


FIXED_NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

_user_numbers = itertools.count(1)


class FakeClock:
    """Controllable clock for the lifecycle service"""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: float = 0, seconds: float = 0) -> None:
        self.now = self.now + timedelta(days=days, seconds=seconds)


async def make_user(
    session: AsyncSession,
    email: Optional[str] = None,
    kyc_level: int = 1,
    referrer_id: Optional[int] = None,
    is_admin: bool = False,
) -> User:
    """Create a committed user (KYC level 1 by default so it can trade)"""
    n = next(_user_numbers)
    user = await create_user(
        session,
        email=email or f"user{n}@example.com",
        password_hash="not-a-bcrypt-hash",
        full_name=f"User {n}",
        referrer_id=referrer_id,
        is_admin=is_admin,
    )
    if kyc_level:
        user.kyc_level = kyc_level
        await session.commit()
    return user


async def make_bot(
    session: AsyncSession,
    profit_range: str = "10-10%",
    enabled: bool = True,
    name: str = "Test Bot",
) -> Bot:
    bot = Bot(
        name=name,
        description="Deterministic test bot",
        profit_range=profit_range,
        risk_level="Low",
        enabled=enabled,
    )
    session.add(bot)
    await session.commit()
    await session.refresh(bot)
    return bot


async def fund_wallet(session: AsyncSession, user_id: int, amount: float, currency: str = "USDT"):
    """Give a user a wallet with `amount` on it (no ledger entry)"""
    ledger = LedgerService(session)
    wallet = await ledger.get_or_create_wallet(user_id, currency)
    if amount:
        await ledger.credit(wallet.id, amount)
    await session.commit()
    return wallet


async def seed_settings(session: AsyncSession, **changes):
    """Persist the settings row (optionally changed)"""
    service = SettingsService(session)
    if changes:
        return await service.update(changes)
    settings = await service.get()
    await session.commit()
    return settings
