"""
Account API Endpoints
Registration, login and current user
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from slowapi import Limiter
from slowapi.util import get_remote_address
from loguru import logger

from src.api.auth import (
    MAX_PASSWORD_BYTES,
    create_access_token,
    get_current_user,
    hash_password,
    verify_password,
)
from src.api.schemas import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from src.core.exceptions import AccountBlocked, AuthenticationError, Conflict, InvalidReferralCode
from src.database.crud import create_user, get_user_by_email, get_user_by_referral_code
from src.database.engine import get_session
from src.database.models import User


router = APIRouter(prefix="/auth", tags=["auth"])

# Brute force protection for login/register
limiter = Limiter(key_func=get_remote_address)


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id),
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def register(
    request: Request,  # Required by limiter
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_session),
):
    """
    Create an account

    Referral code (optional) links the new user to the referrer forever.

    Raises:
        400: passwords differ, malformed email or unknown referral code
        409: email already registered
    """
    email = payload.email.strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise HTTPException(status_code=400, detail="Invalid email address")

    if payload.password != payload.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")

    if len(payload.password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise HTTPException(status_code=400, detail="Password is too long")

    if await get_user_by_email(session, email):
        raise Conflict("Email already registered")

    referrer_id = None
    if payload.referral_code:
        referrer = await get_user_by_referral_code(session, payload.referral_code.strip())
        if referrer is None:
            raise InvalidReferralCode()
        referrer_id = referrer.id

    user = await create_user(
        session,
        email=email,
        password_hash=hash_password(payload.password),
        full_name=payload.full_name,
        country=payload.country,
        referrer_id=referrer_id,
    )

    logger.info(f"Registered user {user.id} (referrer={referrer_id})")
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,  # Required by limiter
    payload: LoginRequest,
    session: AsyncSession = Depends(get_session),
):
    """
    Exchange email + password for a bearer token

    Raises:
        401: unknown email or wrong password
        403: account blocked
    """
    user = await get_user_by_email(session, payload.email)
    if user is None or not verify_password(payload.password, user.password_hash):
        logger.warning(f"Failed login for {payload.email}")
        raise AuthenticationError("Invalid email or password")

    if user.is_blocked:
        raise AccountBlocked()

    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    """Current user profile"""
    return user
