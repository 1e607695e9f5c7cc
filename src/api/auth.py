"""
Authentication

- Passwords: bcrypt (salt embedded in the hash)
- Sessions: JWT bearer tokens (HS256, sub = user id)
"""

from datetime import datetime, timedelta, UTC
from typing import Any, Dict, Optional

import bcrypt
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from jose import JWTError, jwt
from loguru import logger

from config.config import JWT_ALGORITHM, JWT_EXPIRE_MINUTES, JWT_SECRET
from config.sentry import set_user_context
from src.core.exceptions import AccountBlocked, AuthenticationError, PermissionDenied
from src.database.crud import get_user_by_id
from src.database.engine import get_session
from src.database.models import User


# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """
    Hash password with bcrypt

    Raises:
        ValueError: password longer than MAX_PASSWORD_BYTES (checked by the caller)
    """
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed hash or over-long password
        return False


def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> str:
    """
    Issue a JWT for the user

    Args:
        user_id: Subject
        expires_minutes: Lifetime (defaults to JWT_EXPIRE_MINUTES)

    Returns:
        Encoded token
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes or JWT_EXPIRE_MINUTES)).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT

    Raises:
        AuthenticationError: bad signature, expired or malformed token
    """
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise AuthenticationError(f"Invalid token: {e}")

    if not payload.get("sub"):
        raise AuthenticationError("Missing subject in token")
    return payload


async def get_current_user(
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session),
) -> User:
    """
    Resolve the authenticated user from "Authorization: Bearer <jwt>"

    Usage:
        async def handler(user: User = Depends(get_current_user)):
            ...

    Raises:
        AuthenticationError: missing/invalid token or unknown user (401)
        AccountBlocked: user blocked by an admin (403)
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing or invalid authorization header")

    payload = decode_access_token(authorization[7:].strip())

    try:
        user_id = int(payload["sub"])
    except ValueError:
        raise AuthenticationError("Invalid token subject")

    user = await get_user_by_id(session, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    if user.is_blocked:
        logger.warning(f"Blocked user {user.id} tried to access the API")
        raise AccountBlocked()

    set_user_context(user.id, user.email)
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Dependency that requires admin privileges"""
    if not user.is_admin:
        raise PermissionDenied()
    return user
