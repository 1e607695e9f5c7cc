# coding: utf-8
"""
Settings Service

Singleton row with fee rates and feature toggles. Always read fresh
from the database so admin changes apply to the next operation.
"""

import math
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from config.platform_config import (
    DEFAULT_SETTINGS,
    FEE_FIELDS,
    TOGGLE_FIELDS,
    SETTINGS_SINGLETON_ID,
)
from src.core.exceptions import InvalidSetting
from src.database.models import Settings


def validate_settings(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a partial settings update

    Fees must be real numbers in [0, 1], toggles must be booleans.
    Unknown fields are rejected.

    Raises:
        InvalidSetting: first invalid field found
    """
    validated = {}

    for field, value in changes.items():
        if field in FEE_FIELDS:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidSetting(f"{field} must be a number", field=field)
            if not math.isfinite(value) or not 0 <= value <= 1:
                raise InvalidSetting(f"{field} must be between 0 and 1", field=field)
            validated[field] = float(value)
        elif field in TOGGLE_FIELDS:
            if not isinstance(value, bool):
                raise InvalidSetting(f"{field} must be true or false", field=field)
            validated[field] = value
        else:
            raise InvalidSetting(f"Unknown setting: {field}", field=field)

    return validated


class SettingsService:
    """Read and update platform settings"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self) -> Settings:
        """
        Get current settings, creating the defaults on first access

        The defaults row is flushed, it is persisted with the caller's commit.
        """
        stmt = (
            select(Settings)
            .where(Settings.id == SETTINGS_SINGLETON_ID)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        settings = result.scalar_one_or_none()

        if settings is None:
            settings = Settings(id=SETTINGS_SINGLETON_ID, **DEFAULT_SETTINGS)
            self.session.add(settings)
            await self.session.flush()
            logger.info("Created default platform settings")

        return settings

    async def update(self, changes: Dict[str, Any]) -> Settings:
        """
        Apply a partial update and commit

        Nothing is written if any field is invalid.

        Raises:
            InvalidSetting: invalid or unknown field
        """
        validated = validate_settings(changes)
        settings = await self.get()

        for field, value in validated.items():
            setattr(settings, field, value)

        await self.session.commit()
        await self.session.refresh(settings)

        logger.info(f"Settings updated: {validated}")
        return settings
