# coding: utf-8
"""
Ledger Service

Per-user, per-currency wallets and the append-only transaction log.

Rules:
- A wallet balance never goes below zero. Debits are a single
  conditional UPDATE (balance >= amount), so a stale read can't overdraw.
- Every balance change is paired with a Transaction row by the caller.
- Methods flush but never commit: the calling operation owns the unit
  of work and rolls everything back together on failure.
"""

import asyncio
import math
import secrets
import weakref
from datetime import datetime, UTC
from typing import List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from src.core.exceptions import InsufficientFunds, InvalidState, NotFound
from src.database.models import (
    Wallet,
    Transaction,
    TransactionType,
    TransactionStatus,
)


# ===========================
# WALLET LOCKS
# ===========================

# In-process serialization of check-then-debit sequences per (user, currency).
# Entries disappear once no coroutine holds a reference to the lock.
_wallet_locks: "weakref.WeakValueDictionary[tuple[int, str], asyncio.Lock]" = weakref.WeakValueDictionary()


def wallet_lock(user_id: int, currency: str) -> asyncio.Lock:
    """Get the lock guarding a user's wallet in one currency"""
    key = (user_id, currency)
    lock = _wallet_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _wallet_locks[key] = lock
    return lock


# ===========================
# DEPOSIT ADDRESSES
# ===========================

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def generate_deposit_address(currency: str) -> str:
    """
    Generate a mock deposit address shaped like the currency's network

    TRC20 -> T + 33 hex, BTC -> bc1 + 38 hex, ETH/ERC20/BEP20 -> 0x + 40 hex,
    SOL -> 44 base58 chars, anything else -> 0x + 42 hex
    """
    label = currency.upper()

    if "TRC20" in label:
        return "T" + secrets.token_hex(17)[:33]
    if "BTC" in label:
        return "bc1" + secrets.token_hex(19)
    if any(network in label for network in ("ETH", "ERC20", "BEP20")):
        return "0x" + secrets.token_hex(20)
    if "SOL" in label:
        return "".join(secrets.choice(BASE58_ALPHABET) for _ in range(44))
    return "0x" + secrets.token_hex(21)


def _check_amount(amount: float) -> None:
    # Programming error, not a user error: callers validate input first
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValueError(f"Amount must be a number, got {type(amount).__name__}")
    if not math.isfinite(amount) or amount < 0:
        raise ValueError(f"Amount must be finite and non-negative, got {amount}")


def make_tx_reference(prefix: str, entity_id: int) -> str:
    """Synthetic tx_hash for internal movements: <prefix>_<id>_<epoch ms>"""
    return f"{prefix}_{entity_id}_{int(datetime.now(UTC).timestamp() * 1000)}"


class LedgerService:
    """Wallets and transactions of all users"""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ===========================
    # WALLETS
    # ===========================

    async def get_wallet(
        self,
        user_id: int,
        currency: str,
        for_update: bool = False,
    ) -> Optional[Wallet]:
        """
        Get user's wallet in a currency

        Args:
            user_id: Owner
            currency: Currency label
            for_update: Lock the row until the transaction ends (PostgreSQL)

        Returns:
            Wallet or None
        """
        stmt = (
            select(Wallet)
            .where(Wallet.user_id == user_id, Wallet.currency == currency)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_wallet_by_id(self, wallet_id: int) -> Optional[Wallet]:
        stmt = (
            select(Wallet)
            .where(Wallet.id == wallet_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create_wallet(self, user_id: int, currency: str) -> Wallet:
        """
        Get or create a wallet (balance 0)

        Args:
            user_id: Owner
            currency: Currency label

        Returns:
            Existing or newly created Wallet
        """
        wallet = await self.get_wallet(user_id, currency)
        if wallet is not None:
            return wallet

        # Savepoint: a concurrent request may create the same wallet first,
        # only this insert is rolled back then
        try:
            async with self.session.begin_nested():
                wallet = Wallet(user_id=user_id, currency=currency, balance=0.0)
                self.session.add(wallet)
        except IntegrityError:
            wallet = await self.get_wallet(user_id, currency)
            if wallet is None:
                raise
            logger.debug(f"{currency} wallet of user {user_id} created concurrently, using {wallet.id}")
            return wallet

        logger.info(f"Created {currency} wallet {wallet.id} for user {user_id}")
        return wallet

    async def list_wallets(self, user_id: int) -> List[Wallet]:
        stmt = (
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .order_by(Wallet.currency)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def assign_address(self, wallet: Wallet) -> Wallet:
        """Give the wallet a deposit address if it has none yet"""
        if not wallet.address:
            wallet.address = generate_deposit_address(wallet.currency)
            await self.session.flush()
            logger.info(f"Assigned deposit address to wallet {wallet.id} ({wallet.currency})")
        return wallet

    async def debit(self, wallet_id: int, amount: float) -> Wallet:
        """
        Atomically reduce a wallet balance

        Args:
            wallet_id: Wallet to debit
            amount: Amount to take (finite, >= 0)

        Returns:
            Wallet with the new balance

        Raises:
            InsufficientFunds: balance < amount (nothing changed)
            NotFound: wallet doesn't exist
        """
        _check_amount(amount)

        stmt = (
            update(Wallet)
            .where(Wallet.id == wallet_id, Wallet.balance >= amount)
            .values(balance=Wallet.balance - amount, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        wallet = await self.get_wallet_by_id(wallet_id)
        if wallet is None:
            raise NotFound("Wallet not found")
        if result.rowcount == 0:
            logger.warning(
                f"Debit rejected for wallet {wallet_id}: balance {wallet.balance} < {amount}"
            )
            raise InsufficientFunds(balance=wallet.balance, required=amount)

        logger.debug(f"Debited {amount} from wallet {wallet_id}, balance {wallet.balance}")
        return wallet

    async def credit(self, wallet_id: int, amount: float) -> Wallet:
        """
        Atomically increase a wallet balance

        Raises:
            ValueError: amount negative or not finite
            NotFound: wallet doesn't exist
        """
        _check_amount(amount)

        stmt = (
            update(Wallet)
            .where(Wallet.id == wallet_id)
            .values(balance=Wallet.balance + amount, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise NotFound("Wallet not found")

        wallet = await self.get_wallet_by_id(wallet_id)
        logger.debug(f"Credited {amount} to wallet {wallet_id}, balance {wallet.balance}")
        return wallet

    # ===========================
    # TRANSACTIONS
    # ===========================

    async def record_transaction(
        self,
        user_id: int,
        type: TransactionType,
        currency: str,
        amount: float,
        status: TransactionStatus = TransactionStatus.COMPLETED,
        tx_hash: Optional[str] = None,
        fee: Optional[float] = None,
        address: Optional[str] = None,
        source_user_id: Optional[int] = None,
    ) -> Transaction:
        """
        Append a ledger entry

        Args:
            user_id: Owner of the affected wallet
            type: TransactionType
            currency: Currency label
            amount: Balance delta recorded by this entry
            status: Initial status
            tx_hash: External hash or synthetic reference
            fee: Fee share of amount (withdrawals)
            address: Destination address (withdrawals)
            source_user_id: Referred user behind a referral commission

        Returns:
            Created Transaction
        """
        _check_amount(amount)

        transaction = Transaction(
            user_id=user_id,
            type=type.value,
            currency=currency,
            amount=amount,
            fee=fee,
            status=status.value,
            tx_hash=tx_hash,
            address=address,
            source_user_id=source_user_id,
        )
        self.session.add(transaction)
        await self.session.flush()

        logger.info(
            f"Transaction {transaction.id}: user={user_id} type={type.value} "
            f"amount={amount} {currency} status={status.value}"
        )
        return transaction

    async def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_transaction_by_hash(
        self,
        tx_hash: str,
        type: Optional[TransactionType] = None,
    ) -> Optional[Transaction]:
        stmt = select(Transaction).where(Transaction.tx_hash == tx_hash)
        if type is not None:
            stmt = stmt.where(Transaction.type == type.value)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def update_transaction_status(
        self,
        transaction_id: int,
        status: TransactionStatus,
    ) -> Transaction:
        """
        Move a pending transaction to completed or failed

        Raises:
            NotFound: unknown transaction
            InvalidState: transaction is not pending, or status is pending
        """
        transaction = await self.get_transaction(transaction_id)
        if transaction is None:
            raise NotFound("Transaction not found")
        if status == TransactionStatus.PENDING or transaction.status != TransactionStatus.PENDING.value:
            raise InvalidState(
                f"Transaction {transaction_id} cannot go from {transaction.status} to {status.value}"
            )

        transaction.status = status.value
        await self.session.flush()

        logger.info(f"Transaction {transaction_id} -> {status.value}")
        return transaction

    async def list_transactions(
        self,
        user_id: int,
        type: Optional[TransactionType] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Transaction]:
        """User's transactions, newest first"""
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        if type is not None:
            stmt = stmt.where(Transaction.type == type.value)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def sum_transactions(
        self,
        type: TransactionType,
        user_id: Optional[int] = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
        column: str = "amount",
    ) -> float:
        """
        Sum amounts (or fees) of transactions of one type

        Args:
            type: TransactionType to sum
            user_id: Restrict to one user (None = platform-wide)
            status: Only transactions in this status
            column: "amount" or "fee"

        Returns:
            Total (0.0 when nothing matches)
        """
        target = Transaction.fee if column == "fee" else Transaction.amount
        stmt = select(func.coalesce(func.sum(target), 0.0)).where(
            Transaction.type == type.value,
            Transaction.status == status.value,
        )
        if user_id is not None:
            stmt = stmt.where(Transaction.user_id == user_id)
        result = await self.session.execute(stmt)
        return float(result.scalar_one())
