"""
CRUD operations for the Trading Bot Platform

Async database operations using SQLAlchemy 2.0.
Helpers that are composed into larger units of work only flush,
the calling service owns the commit.
"""

import logging
import random
import string
from typing import List, Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from config.referral_config import REFERRAL_CODE_LENGTH
from src.database.models import (
    User,
    UserBot,
    Wallet,
    KycDocument,
    KycStatus,
    Notification,
    NotificationType,
    PositionStatus,
)

logger = logging.getLogger(__name__)


# ===========================
# USER OPERATIONS
# ===========================


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[User]:
    """
    Get user by ID

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User model or None
    """
    stmt = select(User).where(User.id == user_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    """Get user by email (case-insensitive)"""
    stmt = select(User).where(func.lower(User.email) == email.strip().lower())
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_user_by_referral_code(session: AsyncSession, code: str) -> Optional[User]:
    stmt = select(User).where(User.referral_code == code.strip().upper())
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def generate_referral_code(session: AsyncSession) -> str:
    """
    Generate unique referral code

    Args:
        session: Database session

    Returns:
        Unique referral code (8 characters, A-Z0-9)
    """
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=REFERRAL_CODE_LENGTH))

        stmt = select(User.id).where(User.referral_code == code)
        result = await session.execute(stmt)
        if not result.scalar_one_or_none():
            return code


async def create_user(
    session: AsyncSession,
    email: str,
    password_hash: str,
    full_name: Optional[str] = None,
    country: Optional[str] = None,
    referrer_id: Optional[int] = None,
    is_admin: bool = False,
    language: str = "en",
) -> User:
    """
    Create new user with a fresh referral code

    Args:
        session: Database session
        email: Login email (stored lower-case)
        password_hash: Already hashed password
        full_name: Display name
        country: Country of residence
        referrer_id: ID of the referring user (immutable afterwards)
        is_admin: Grant admin access
        language: UI language

    Returns:
        Created User model
    """
    user = User(
        email=email.strip().lower(),
        password_hash=password_hash,
        full_name=full_name,
        country=country,
        referrer_id=referrer_id,
        is_admin=is_admin,
        language=language,
        referral_code=await generate_referral_code(session),
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"User created: {user.id} ({user.email}), referrer={referrer_id}")
    return user


async def list_users(
    session: AsyncSession,
    search: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[User]:
    """List users, newest first, optionally filtered by email/name"""
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc()).limit(limit).offset(offset)
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(func.lower(User.email).like(pattern), func.lower(User.full_name).like(pattern))
        )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def set_user_blocked(session: AsyncSession, user: User, blocked: bool) -> User:
    """
    Block or unblock a user

    Only touches is_blocked; admin rights are a separate flag.
    """
    user.is_blocked = blocked
    await session.commit()
    await session.refresh(user)

    logger.info(f"User {user.id} {'blocked' if blocked else 'unblocked'}")
    return user


async def get_active_bot_counts(session: AsyncSession, user_ids: List[int]) -> dict[int, int]:
    """Count active positions per user"""
    if not user_ids:
        return {}
    stmt = (
        select(UserBot.user_id, func.count(UserBot.id))
        .where(UserBot.user_id.in_(user_ids), UserBot.status == PositionStatus.ACTIVE.value)
        .group_by(UserBot.user_id)
    )
    result = await session.execute(stmt)
    return {user_id: count for user_id, count in result.all()}


async def get_total_balances(session: AsyncSession, user_ids: List[int]) -> dict[int, float]:
    """Sum of wallet balances per user (all currencies, nominal)"""
    if not user_ids:
        return {}
    stmt = (
        select(Wallet.user_id, func.coalesce(func.sum(Wallet.balance), 0.0))
        .where(Wallet.user_id.in_(user_ids))
        .group_by(Wallet.user_id)
    )
    result = await session.execute(stmt)
    return {user_id: float(total) for user_id, total in result.all()}


# ===========================
# NOTIFICATION OPERATIONS
# ===========================


async def create_notification(
    session: AsyncSession,
    message: str,
    user_id: Optional[int] = None,
    notification_type: NotificationType = NotificationType.PERSONAL,
) -> Notification:
    """
    Add a notification (user_id=None makes it global). Caller commits.
    """
    if user_id is None:
        notification_type = NotificationType.GLOBAL

    notification = Notification(
        user_id=user_id,
        message=message,
        type=notification_type.value,
        active=True,
    )
    session.add(notification)
    await session.flush()

    logger.info(f"Notification {notification.id} created ({notification.type}) for user {user_id}")
    return notification


async def get_notifications_for_user(session: AsyncSession, user_id: int) -> List[Notification]:
    """Active personal notifications of the user plus active global ones"""
    stmt = (
        select(Notification)
        .where(
            Notification.active.is_(True),
            or_(Notification.user_id == user_id, Notification.user_id.is_(None)),
        )
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def dismiss_notification(session: AsyncSession, user_id: int, notification_id: int) -> bool:
    """
    Deactivate a personal notification

    Returns:
        True if a notification of this user was dismissed
    """
    stmt = (
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(active=False)
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount > 0


# ===========================
# KYC DOCUMENT OPERATIONS
# ===========================


async def create_kyc_document(
    session: AsyncSession,
    user_id: int,
    document_type: str,
    level: int,
    document_reference: Optional[str] = None,
) -> KycDocument:
    document = KycDocument(
        user_id=user_id,
        document_type=document_type,
        document_reference=document_reference,
        level=level,
        status=KycStatus.PENDING.value,
    )
    session.add(document)
    await session.flush()
    return document


async def get_kyc_document(session: AsyncSession, document_id: int) -> Optional[KycDocument]:
    stmt = select(KycDocument).where(KycDocument.id == document_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_user_kyc_documents(session: AsyncSession, user_id: int) -> List[KycDocument]:
    """User's KYC submissions, newest first"""
    stmt = (
        select(KycDocument)
        .where(KycDocument.user_id == user_id)
        .order_by(KycDocument.created_at.desc(), KycDocument.id.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_kyc_documents(
    session: AsyncSession,
    status: Optional[str] = None,
) -> List[KycDocument]:
    """All KYC submissions for admin review, oldest pending first"""
    stmt = select(KycDocument).order_by(KycDocument.created_at.asc(), KycDocument.id.asc())
    if status:
        stmt = stmt.where(KycDocument.status == status)
    result = await session.execute(stmt)
    return list(result.scalars().all())
