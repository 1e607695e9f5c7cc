"""
Seed the bot catalog, platform settings and the first admin

Safe to run multiple times:
- bots are matched by name, existing ones are left untouched
- settings row is created with defaults only if missing
- admin is created only if ADMIN_EMAIL is set and not registered yet
  (an existing user with that email is promoted)
"""
import asyncio
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from loguru import logger

from config.platform_config import DEFAULT_BOTS
from src.api.auth import hash_password
from src.database.crud import create_user, get_user_by_email
from src.database.engine import get_session_maker
from src.database.models import Bot
from src.services.settings_service import SettingsService


async def seed_bots(session) -> int:
    """Insert catalog bots that don't exist yet"""
    result = await session.execute(select(Bot.name))
    existing = set(result.scalars().all())

    created = 0
    for data in DEFAULT_BOTS:
        if data["name"] in existing:
            logger.info(f"Bot '{data['name']}' already exists, skipping")
            continue

        session.add(Bot(enabled=True, **data))
        created += 1
        logger.info(f"Added bot '{data['name']}' ({data['profit_range']}, {data['risk_level']})")

    await session.commit()
    return created


async def seed_admin(session) -> None:
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email:
        logger.info("ADMIN_EMAIL not set, no admin created")
        return

    user = await get_user_by_email(session, email)
    if user:
        if not user.is_admin:
            user.is_admin = True
            await session.commit()
            logger.info(f"Promoted existing user {user.id} ({user.email}) to admin")
        return

    if not password or len(password) < 8:
        logger.error("ADMIN_PASSWORD must be set (min 8 chars) to create the admin")
        return

    user = await create_user(session, email=email, password_hash=hash_password(password), is_admin=True)
    logger.info(f"Created admin {user.id} ({user.email})")


async def seed_platform():
    session_maker = get_session_maker()
    async with session_maker() as session:
        settings = await SettingsService(session).get()
        await session.commit()
        logger.info(
            f"Settings: withdrawal_fee={settings.withdrawal_fee}, "
            f"bots_enabled={settings.bots_enabled}"
        )

        created = await seed_bots(session)
        logger.info(f"Seeded {created} new bots ({len(DEFAULT_BOTS)} in catalog config)")

        await seed_admin(session)


async def main():
    """Main entry point"""
    try:
        await seed_platform()
    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        raise


if __name__ == "__main__":
    asyncio.run(main())
