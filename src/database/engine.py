"""
Database engine and sessions

One lazily created AsyncEngine per process. Schema changes go through
Alembic (alembic/versions), nothing here creates tables.
"""

import logging
from typing import Any, AsyncGenerator, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)

from config.config import DATABASE_URL, ENVIRONMENT

logger = logging.getLogger(__name__)


engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def _engine_options(url: str) -> Dict[str, Any]:
    """Pool settings per backend (SQLite is only used locally)"""
    options: Dict[str, Any] = {"echo": False, "pool_pre_ping": True}

    if url.startswith("postgresql"):
        production = ENVIRONMENT == "production"
        options.update(
            pool_size=10 if production else 5,
            max_overflow=20 if production else 10,
            pool_recycle=3600,
            connect_args={
                # pgbouncer in transaction mode can't keep prepared statements
                "statement_cache_size": 0,
                "server_settings": {"application_name": "bot_platform_api"},
            },
        )
    return options


def get_engine() -> AsyncEngine:
    global engine

    if engine is None:
        engine = create_async_engine(DATABASE_URL, **_engine_options(DATABASE_URL))
        logger.info(f"Database engine created ({DATABASE_URL.split('://')[0]}, env={ENVIRONMENT})")

    return engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """
    Session factory shared by the API and the scheduler jobs

    expire_on_commit=False: services return ORM objects after commit and
    the response models read them outside the session.
    """
    global AsyncSessionLocal

    if AsyncSessionLocal is None:
        AsyncSessionLocal = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    return AsyncSessionLocal


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: one session per request

    Uncommitted work is rolled back when the handler raises.
    """
    async with get_session_maker()() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.debug(f"Session rolled back: {type(e).__name__}")
            raise


async def check_connection() -> bool:
    """True if the database answers SELECT 1 (health endpoint)"""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


async def dispose_engine() -> None:
    """Close pooled connections on shutdown"""
    global engine, AsyncSessionLocal

    if engine is not None:
        await engine.dispose()
        logger.info("Database engine disposed")
        engine = None
        AsyncSessionLocal = None
