# coding: utf-8
"""
Bot Catalog

Admin-managed bot definitions and the profit range parser used by the
stop simulation.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from src.core.exceptions import InvalidSetting, InvalidState, NotFound
from src.database.models import Bot, UserBot, PositionStatus


# Leading number of a range side: "15% monthly" -> 15
_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)")

BOT_FIELDS = ("name", "description", "profit_range", "risk_level", "icon", "enabled")


def _parse_percent(part: str) -> Optional[float]:
    match = _LEADING_NUMBER.match(part)
    if not match:
        return None
    return float(match.group(1))


def parse_profit_range(profit_range: str) -> Tuple[float, float]:
    """
    Parse "<min>-<max>" percentages into fractions

    Each side is read up to its first non-numeric character, so
    "8-15% monthly" gives (0.08, 0.15). A single value is used for both
    ends ("5%" -> (0.05, 0.05)). Anything unparseable gives (0.0, 0.0).

    Args:
        profit_range: Range string from the catalog

    Returns:
        (min_rate, max_rate) as fractions
    """
    parts = (profit_range or "").split("-")

    min_percent = _parse_percent(parts[0])
    if min_percent is None:
        return 0.0, 0.0

    max_percent = _parse_percent(parts[1]) if len(parts) > 1 else None
    if max_percent is None:
        max_percent = min_percent

    return min_percent / 100, max_percent / 100


def validate_profit_range(profit_range: Any) -> str:
    """
    Reject ranges the parser would silently turn into 0-0

    Raises:
        InvalidSetting: not a string or no leading number
    """
    if not isinstance(profit_range, str) or _parse_percent(profit_range.split("-")[0]) is None:
        raise InvalidSetting("profit_range must look like '8-15% monthly'", field="profit_range")
    return profit_range.strip()


class BotCatalog:
    """Bot definitions"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find(self, bot_id: int) -> Optional[Bot]:
        stmt = select(Bot).where(Bot.id == bot_id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, bot_id: int) -> Bot:
        """
        Get bot by ID

        Raises:
            NotFound: no such bot
        """
        bot = await self.find(bot_id)
        if bot is None:
            raise NotFound("Bot not found")
        return bot

    async def list_enabled(self) -> List[Bot]:
        stmt = select(Bot).where(Bot.enabled.is_(True)).order_by(Bot.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_all(self) -> List[Bot]:
        result = await self.session.execute(select(Bot).order_by(Bot.id))
        return list(result.scalars().all())

    async def create(self, data: Dict[str, Any]) -> Bot:
        """
        Create a bot (enabled unless stated otherwise)

        Raises:
            InvalidSetting: missing name/risk level or bad profit range
        """
        if not data.get("name") or not data.get("risk_level"):
            raise InvalidSetting("name and risk_level are required")

        bot = Bot(
            name=data["name"],
            description=data.get("description") or "",
            profit_range=validate_profit_range(data.get("profit_range")),
            risk_level=data["risk_level"],
            icon=data.get("icon"),
            enabled=data.get("enabled", True),
        )
        self.session.add(bot)
        await self.session.commit()
        await self.session.refresh(bot)

        logger.info(f"Bot created: {bot.id} ({bot.name})")
        return bot

    async def update(self, bot_id: int, changes: Dict[str, Any]) -> Bot:
        """
        Partially update a bot

        Raises:
            NotFound: no such bot
            InvalidSetting: unknown field or bad profit range
        """
        bot = await self.get(bot_id)

        for field, value in changes.items():
            if field not in BOT_FIELDS:
                raise InvalidSetting(f"Unknown bot field: {field}", field=field)
            if field == "profit_range":
                value = validate_profit_range(value)
            setattr(bot, field, value)

        await self.session.commit()
        await self.session.refresh(bot)

        logger.info(f"Bot {bot_id} updated: {list(changes)}")
        return bot

    async def set_enabled(self, bot_id: int, enabled: bool) -> Bot:
        bot = await self.get(bot_id)
        bot.enabled = enabled
        await self.session.commit()
        await self.session.refresh(bot)

        logger.info(f"Bot {bot_id} {'enabled' if enabled else 'disabled'}")
        return bot

    async def delete(self, bot_id: int) -> None:
        """
        Delete a bot nobody has ever used

        Raises:
            NotFound: no such bot
            InvalidState: bot has active instances or position history
        """
        bot = await self.get(bot_id)

        stmt = (
            select(UserBot.status, func.count(UserBot.id))
            .where(UserBot.bot_id == bot_id)
            .group_by(UserBot.status)
        )
        result = await self.session.execute(stmt)
        counts = dict(result.all())

        if counts.get(PositionStatus.ACTIVE.value):
            raise InvalidState("Cannot delete bot with active instances")
        if counts:
            raise InvalidState("Bot has position history, disable it instead")

        await self.session.delete(bot)
        await self.session.commit()

        logger.info(f"Bot {bot_id} deleted")
