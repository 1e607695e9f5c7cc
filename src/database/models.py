"""
Database models for the Trading Bot Platform

SQLAlchemy 2.0 models with full type hints
"""

from datetime import datetime, UTC
from typing import Optional
from enum import Enum

from sqlalchemy import (
    String,
    Text,
    Integer,
    Float,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models"""

    pass


def utcnow() -> datetime:
    return datetime.now(UTC)


# ===========================
# ENUMS
# ===========================


class TransactionType(str, Enum):
    """Ledger transaction types"""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    BOT_INVESTMENT = "bot_investment"  # Funds locked into a bot
    BOT_RETURN = "bot_return"  # Principal returned on stop
    BOT_PROFIT = "bot_profit"  # Simulated profit paid on stop
    REFERRAL_COMMISSION = "referral_commission"  # Paid to the referrer


class TransactionStatus(str, Enum):
    """Ledger transaction status (pending -> completed | failed)"""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PositionStatus(str, Enum):
    """Bot position status (active -> completed)"""

    ACTIVE = "active"
    COMPLETED = "completed"


class ReferralLevel(str, Enum):
    """Referral tier levels"""

    BRONZE = "bronze"  # 0-4 active referrals
    SILVER = "silver"  # 5-14 active referrals
    GOLD = "gold"  # 15+ active referrals


class KycStatus(str, Enum):
    """KYC document review status"""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    """Notification audience"""

    GLOBAL = "global"
    PERSONAL = "personal"
    KYC = "kyc"


# ===========================
# MODELS
# ===========================


class User(Base):
    """
    Platform user

    Tracks:
    - Credentials and profile
    - Admin and blocked flags (independent of each other)
    - Verified KYC level (0-3, only ever raised)
    - Referral code, referrer and cached referral tier
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False, comment="Login email"
    )
    password_hash: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="scrypt hash: salt$hash (hex)"
    )
    full_name: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Display name"
    )
    country: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True, comment="Country of residence"
    )
    language: Mapped[str] = mapped_column(
        String(10), default="en", nullable=False, comment="UI language"
    )

    is_admin: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Has access to admin endpoints"
    )
    is_blocked: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Blocked by an admin"
    )

    kyc_level: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False, comment="Verified KYC level 0-3"
    )

    # Referral fields
    referral_code: Mapped[str] = mapped_column(
        String(20), unique=True, index=True, nullable=False, comment="Own referral code"
    )
    referrer_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
        comment="User who referred this user (set once at registration)",
    )
    referral_level: Mapped[str] = mapped_column(
        String(20),
        default=ReferralLevel.BRONZE.value,
        nullable=False,
        comment="Last computed referral tier (display only)",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("kyc_level >= 0 AND kyc_level <= 3", name="ck_users_kyc_level"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, kyc_level={self.kyc_level})>"


class Wallet(Base):
    """
    Per-user, per-currency balance

    One row per (user_id, currency), created lazily, never deleted.
    Balance is never negative (enforced by a check constraint and by
    the conditional debit in LedgerService).
    """

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(
        String(64), nullable=False, comment="Opaque currency label, e.g. 'USDT (TRC20)'"
    )
    address: Mapped[Optional[str]] = mapped_column(
        String(128), nullable=True, comment="Deposit address"
    )
    balance: Mapped[float] = mapped_column(
        Float, default=0.0, nullable=False, comment="Current balance"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "currency", name="uq_wallets_user_currency"),
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Wallet(id={self.id}, user_id={self.user_id}, currency={self.currency}, balance={self.balance})>"


class Transaction(Base):
    """
    Append-only ledger entry

    `amount` is the balance delta of the mutation it records. For
    withdrawals that is the requested amount plus the fee, and `fee`
    carries the fee share. Only `status` may change after insert.
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    type: Mapped[str] = mapped_column(
        String(32), nullable=False, index=True, comment="TransactionType value"
    )
    currency: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    fee: Mapped[Optional[float]] = mapped_column(
        Float, nullable=True, comment="Fee share of amount (withdrawals)"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=TransactionStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    tx_hash: Mapped[Optional[str]] = mapped_column(
        String(128), nullable=True, index=True, comment="External or synthetic reference"
    )
    address: Mapped[Optional[str]] = mapped_column(
        String(128), nullable=True, comment="Destination address (withdrawals)"
    )
    source_user_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Referred user whose bot profit produced this commission",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_transactions_user_type", "user_id", "type"),
        # A deposit hash (or synthetic reference) is booked once per type
        Index("uq_transactions_type_tx_hash", "type", "tx_hash", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, type={self.type}, amount={self.amount}, status={self.status})>"


class Bot(Base):
    """Catalog entry for a trading bot (admin managed)"""

    __tablename__ = "bots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    profit_range: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="'<min>-<max>' percent, e.g. '8-15% monthly'"
    )
    risk_level: Mapped[str] = mapped_column(String(50), nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Bot(id={self.id}, name={self.name}, enabled={self.enabled})>"


class UserBot(Base):
    """
    A user's running (or finished) bot instance

    Lifecycle: active -> completed. `profit` stays 0 until stop.
    """

    __tablename__ = "user_bots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    bot_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("bots.id"),
        index=True,
        nullable=False,
    )
    investment: Mapped[float] = mapped_column(Float, nullable=False)
    profit: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    currency: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=PositionStatus.ACTIVE.value,
        nullable=False,
        index=True,
    )

    # User-chosen parameters (display only, except max_duration_days)
    strategy: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    stop_loss_percentage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    take_profit_percentage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_duration_days: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True, comment="Auto-stop after this many days"
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_user_bots_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<UserBot(id={self.id}, user_id={self.user_id}, bot_id={self.bot_id}, status={self.status})>"


class Settings(Base):
    """Platform settings singleton (id = 1)"""

    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    withdrawal_fee: Mapped[float] = mapped_column(Float, nullable=False)
    bronze_fee: Mapped[float] = mapped_column(Float, nullable=False)
    silver_fee: Mapped[float] = mapped_column(Float, nullable=False)
    gold_fee: Mapped[float] = mapped_column(Float, nullable=False)
    maintenance_mode: Mapped[bool] = mapped_column(Boolean, nullable=False)
    bots_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Settings(bots_enabled={self.bots_enabled}, maintenance={self.maintenance_mode})>"


class KycDocument(Base):
    """
    KYC submission

    Only a reference to the stored document is kept, file storage
    lives outside this service.
    """

    __tablename__ = "kyc_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    document_type: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="passport, id_card, proof_of_address, video, ..."
    )
    document_reference: Mapped[Optional[str]] = mapped_column(
        String(512), nullable=True, comment="Storage key or URL of the uploaded file"
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=KycStatus.PENDING.value, nullable=False, index=True
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<KycDocument(id={self.id}, user_id={self.user_id}, level={self.level}, status={self.status})>"


class Notification(Base):
    """User-facing notification (user_id NULL = everyone)"""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=True,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(
        String(20), default=NotificationType.PERSONAL.value, nullable=False
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"
