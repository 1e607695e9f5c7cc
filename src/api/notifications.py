"""
Notifications API Endpoints
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import get_current_user
from src.api.schemas import NotificationResponse
from src.core.exceptions import NotFound
from src.database.crud import dismiss_notification, get_notifications_for_user
from src.database.engine import get_session
from src.database.models import User


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Active personal and global notifications"""
    return await get_notifications_for_user(session, user.id)


@router.post("/{notification_id}/dismiss")
async def dismiss(
    notification_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Hide a personal notification"""
    if not await dismiss_notification(session, user.id, notification_id):
        raise NotFound("Notification not found")
    return {"success": True}
