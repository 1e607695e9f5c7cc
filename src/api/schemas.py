# coding: utf-8
"""
Request/response models shared by the API routers

JSON field names are camelCase (frontend contract), Python attributes
stay snake_case.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model: camelCase aliases, accepts both spellings, reads ORM objects"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ===========================
# USERS / AUTH
# ===========================


class UserResponse(CamelModel):
    id: int
    email: str
    full_name: Optional[str] = None
    country: Optional[str] = None
    language: str
    is_admin: bool
    is_blocked: bool
    kyc_level: int
    referral_code: str
    referral_level: str
    created_at: datetime


class RegisterRequest(CamelModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    confirm_password: str
    full_name: Optional[str] = Field(default=None, max_length=255)
    country: Optional[str] = Field(default=None, max_length=100)
    referral_code: Optional[str] = Field(default=None, max_length=20)


class LoginRequest(CamelModel):
    email: str
    password: str


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# ===========================
# BOTS
# ===========================


class BotResponse(CamelModel):
    id: int
    name: str
    description: str
    profit_range: str
    risk_level: str
    icon: Optional[str] = None
    enabled: bool


class LaunchBotRequest(CamelModel):
    bot_id: int
    investment: float
    currency: str = Field(min_length=1, max_length=64)
    strategy: Optional[str] = Field(default=None, max_length=50)
    stop_loss_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    take_profit_percentage: Optional[float] = Field(default=None, ge=0)
    max_duration_days: Optional[int] = Field(default=None, ge=1, le=3650)


class LaunchBotResponse(CamelModel):
    id: int
    bot_id: int
    status: str
    investment: float
    currency: str
    started_at: datetime


class StopBotResponse(CamelModel):
    id: int
    status: str
    investment: float
    profit: float
    total: float


class PositionResponse(CamelModel):
    """User's bot instance joined with its catalog entry"""

    id: int
    bot_id: int
    name: str
    description: str
    icon: Optional[str] = None
    risk_level: str
    profit_range: str
    investment: float
    profit: float
    currency: str
    status: str
    strategy: Optional[str] = None
    stop_loss_percentage: Optional[float] = None
    take_profit_percentage: Optional[float] = None
    max_duration_days: Optional[int] = None
    started_at: datetime
    completed_at: Optional[datetime] = None


# ===========================
# WALLETS
# ===========================


class WalletResponse(CamelModel):
    id: int
    currency: str
    balance: float
    address: Optional[str] = None
    created_at: datetime


class TransactionResponse(CamelModel):
    id: int
    type: str
    currency: str
    amount: float
    fee: Optional[float] = None
    status: str
    tx_hash: Optional[str] = None
    address: Optional[str] = None
    created_at: datetime


class CurrencyRequest(CamelModel):
    currency: str = Field(min_length=1, max_length=64)


class AddressResponse(CamelModel):
    currency: str
    address: str


class WithdrawRequest(CamelModel):
    currency: str = Field(min_length=1, max_length=64)
    amount: float
    address: str = Field(min_length=1, max_length=128)


class WithdrawResponse(CamelModel):
    id: int
    amount: float
    fee: float
    total: float
    status: str


class DepositWebhookRequest(CamelModel):
    user_id: int
    currency: str = Field(min_length=1, max_length=64)
    amount: float
    tx_hash: str = Field(min_length=1, max_length=128)


class SimulateDepositRequest(CamelModel):
    currency: str = Field(min_length=1, max_length=64)
    amount: float


# ===========================
# REFERRALS
# ===========================


class ReferralInfoResponse(CamelModel):
    referral_code: str
    referral_link: str
    referral_level: str
    referral_count: int
    active_referrals: int
    total_earnings: float


class ReferralResponse(CamelModel):
    id: int
    email: str
    full_name: Optional[str] = None
    is_active: bool
    total_earnings: float
    joined_date: datetime


# ===========================
# KYC
# ===========================


class KycSubmitRequest(CamelModel):
    document_type: str = Field(min_length=1, max_length=50)
    level: int
    document_reference: Optional[str] = Field(default=None, max_length=512)


class KycDocumentResponse(CamelModel):
    id: int
    user_id: int
    document_type: str
    document_reference: Optional[str] = None
    level: int
    status: str
    rejection_reason: Optional[str] = None
    created_at: datetime


class KycStatusResponse(CamelModel):
    level1: str
    level2: str
    level3: str
    address_verified: bool
    video_verified: bool
    rejection_reason: Optional[str] = None


# ===========================
# NOTIFICATIONS
# ===========================


class NotificationResponse(CamelModel):
    id: int
    user_id: Optional[int] = None
    message: str
    type: str
    active: bool
    created_at: datetime
