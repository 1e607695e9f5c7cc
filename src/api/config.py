"""
Config API Endpoints
Public platform status for the frontend
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.engine import get_session
from src.services.settings_service import SettingsService

# Create router
router = APIRouter(prefix="/config", tags=["config"])


@router.get("/status")
async def get_status(session: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    """
    Platform switches

    Public endpoint - no authentication required

    Returns:
        {
            "maintenanceMode": false,
            "botsEnabled": true
        }
    """
    settings = await SettingsService(session).get()
    return {
        "maintenanceMode": settings.maintenance_mode,
        "botsEnabled": settings.bots_enabled,
    }
