# coding: utf-8
"""
Wallet Service

User-facing wallet flows on top of the ledger:
- Withdrawals (KYC gated, fee from settings, pending until confirmed)
- Deposits reported by the payment processor webhook (HMAC-SHA512 signed)
- Simulated deposits for test environments
- Deposit addresses

Security:
- Webhook signature = hex HMAC-SHA512 of the raw request body with
  DEPOSIT_WEBHOOK_SECRET, compared in constant time
- Deposits are idempotent by tx_hash (processor retries are safe)
"""

import hashlib
import hmac
import math
import secrets
from datetime import datetime, timedelta, UTC
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from config.config import DEPOSIT_WEBHOOK_SECRET
from src.core.exceptions import InvalidAmount, InvalidState, NotFound
from src.database.crud import get_user_by_id
from src.database.models import (
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    Wallet,
)
from src.services.kyc_gate import KycAction, KycGate
from src.services.ledger_service import LedgerService, wallet_lock
from src.services.settings_service import SettingsService


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: Optional[str] = None) -> bool:
    """
    Verify deposit webhook signature

    Args:
        body: Raw request body
        signature: Hex digest from the X-Webhook-Signature header
        secret: Shared secret (defaults to DEPOSIT_WEBHOOK_SECRET)

    Returns:
        True if signature matches
    """
    secret = secret if secret is not None else DEPOSIT_WEBHOOK_SECRET
    if not secret or not signature:
        return False

    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature.strip().lower())


def _require_positive(amount: Any) -> float:
    if (
        isinstance(amount, bool)
        or not isinstance(amount, (int, float))
        or not math.isfinite(amount)
        or amount <= 0
    ):
        raise InvalidAmount()
    return float(amount)


class WalletService:
    """Withdrawals, deposits and deposit addresses"""

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[SettingsService] = None,
        ledger: Optional[LedgerService] = None,
        kyc_gate: Optional[KycGate] = None,
    ):
        self.session = session
        self.settings = settings or SettingsService(session)
        self.ledger = ledger or LedgerService(session)
        self.kyc_gate = kyc_gate or KycGate()

    # ===========================
    # WITHDRAWALS
    # ===========================

    async def withdraw(
        self,
        user: User,
        currency: str,
        amount: float,
        address: str,
    ) -> Dict[str, Any]:
        """
        Request a withdrawal

        Debits amount + fee (fee = amount * withdrawal_fee) and records a
        pending withdrawal transaction for the debited total.

        Raises:
            InvalidAmount: amount <= 0
            KycRequired: KYC level too low
            NotFound: user has no wallet in this currency
            InsufficientFunds: balance < amount + fee

        Returns:
            {id, amount, fee, total, status}
        """
        amount = _require_positive(amount)
        self.kyc_gate.check(user, KycAction.WITHDRAW)

        async with wallet_lock(user.id, currency):
            try:
                wallet = await self.ledger.get_wallet(user.id, currency, for_update=True)
                if wallet is None:
                    raise NotFound(f"{currency} wallet not found")

                settings = await self.settings.get()
                fee = amount * settings.withdrawal_fee
                total = amount + fee

                await self.ledger.debit(wallet.id, total)
                transaction = await self.ledger.record_transaction(
                    user_id=user.id,
                    type=TransactionType.WITHDRAWAL,
                    currency=currency,
                    amount=total,
                    fee=fee,
                    status=TransactionStatus.PENDING,
                    tx_hash="0x" + secrets.token_hex(32),
                    address=address,
                )
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        logger.info(
            f"Withdrawal requested: tx={transaction.id} user={user.id} "
            f"amount={amount} fee={fee} {currency}"
        )
        return {
            "id": transaction.id,
            "amount": amount,
            "fee": fee,
            "total": total,
            "status": transaction.status,
        }

    async def confirm_withdrawal(self, transaction_id: int) -> Optional[Transaction]:
        """
        Mark a pending withdrawal completed

        Returns:
            Updated transaction, or None if it was already settled
        """
        try:
            transaction = await self.ledger.update_transaction_status(
                transaction_id, TransactionStatus.COMPLETED
            )
        except InvalidState as e:
            logger.warning(f"Withdrawal {transaction_id} not confirmed: {e}")
            return None

        await self.session.commit()
        return transaction

    # ===========================
    # DEPOSITS
    # ===========================

    async def deposit(
        self,
        user_id: int,
        currency: str,
        amount: float,
        tx_hash: Optional[str] = None,
    ) -> Tuple[Transaction, bool]:
        """
        Credit a confirmed deposit

        Args:
            user_id: Receiving user
            currency: Currency label
            amount: Deposited amount (> 0)
            tx_hash: Processor/blockchain hash, used for idempotency

        Returns:
            (transaction, created) - created is False for a replayed tx_hash

        Raises:
            InvalidAmount: amount <= 0
            NotFound: unknown user
        """
        amount = _require_positive(amount)

        if await get_user_by_id(self.session, user_id) is None:
            raise NotFound("User not found")

        async with wallet_lock(user_id, currency):
            if tx_hash:
                existing = await self.ledger.get_transaction_by_hash(tx_hash, TransactionType.DEPOSIT)
                if existing:
                    logger.info(f"Deposit {tx_hash} already processed as tx {existing.id}, skipping")
                    return existing, False

            try:
                wallet = await self.ledger.get_or_create_wallet(user_id, currency)
                await self.ledger.credit(wallet.id, amount)
                transaction = await self.ledger.record_transaction(
                    user_id=user_id,
                    type=TransactionType.DEPOSIT,
                    currency=currency,
                    amount=amount,
                    status=TransactionStatus.COMPLETED,
                    tx_hash=tx_hash,
                )
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                # Another worker booked the same hash between our check and insert
                existing = None
                if tx_hash:
                    existing = await self.ledger.get_transaction_by_hash(tx_hash, TransactionType.DEPOSIT)
                if existing is None:
                    raise
                logger.warning(f"Deposit {tx_hash} booked concurrently as tx {existing.id}, credit rolled back")
                return existing, False
            except Exception:
                await self.session.rollback()
                raise

        logger.info(f"Deposit credited: tx={transaction.id} user={user_id} amount={amount} {currency}")
        return transaction, True

    async def simulate_deposit(self, user: User, currency: str, amount: float) -> Transaction:
        """Test-environment deposit (availability checked by the API layer)"""
        transaction, _ = await self.deposit(
            user.id, currency, amount, tx_hash="sim_" + secrets.token_hex(16)
        )
        return transaction

    # ===========================
    # ADDRESSES
    # ===========================

    async def generate_address(self, user: User, currency: str) -> Wallet:
        """Get or create the wallet and make sure it has a deposit address"""
        wallet = await self.ledger.get_or_create_wallet(user.id, currency)
        await self.ledger.assign_address(wallet)
        await self.session.commit()
        return wallet

    async def get_address(self, user: User, currency: str) -> Wallet:
        """
        Raises:
            NotFound: no wallet or no address generated yet
        """
        wallet = await self.ledger.get_wallet(user.id, currency)
        if wallet is None or not wallet.address:
            raise NotFound(f"No deposit address for {currency}")
        return wallet

    async def list_stale_pending_withdrawals(self, older_than_seconds: int) -> list[int]:
        """IDs of withdrawals still pending after the confirmation delay"""
        cutoff = datetime.now(UTC) - timedelta(seconds=older_than_seconds)
        stmt = select(Transaction.id).where(
            Transaction.type == TransactionType.WITHDRAWAL.value,
            Transaction.status == TransactionStatus.PENDING.value,
            Transaction.created_at <= cutoff,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
