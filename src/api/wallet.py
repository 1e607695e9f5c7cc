# coding: utf-8
"""
Wallet API Endpoints

- Balances, transaction history, deposit addresses
- Withdrawals (KYC gated, confirmed by the scheduler after a delay)
- Deposit webhook from the payment processor

Security:
- Deposit webhook is authenticated by HMAC-SHA512 of the raw body
  (X-Webhook-Signature header), never by user tokens
- Simulated deposits only outside production (ALLOW_SIMULATED_DEPOSITS)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from slowapi import Limiter
from slowapi.util import get_remote_address
from loguru import logger

from config.config import ALLOW_SIMULATED_DEPOSITS
from src.api.auth import get_current_user
from src.api.schemas import (
    AddressResponse,
    CurrencyRequest,
    DepositWebhookRequest,
    SimulateDepositRequest,
    TransactionResponse,
    WalletResponse,
    WithdrawRequest,
    WithdrawResponse,
)
from src.core.exceptions import InvalidSignature
from src.database.engine import get_session
from src.database.models import TransactionType, User
from src.services.ledger_service import LedgerService
from src.services.wallet_service import WalletService, verify_webhook_signature
from src.tasks.platform_scheduler import platform_scheduler


router = APIRouter(tags=["wallets"])

limiter = Limiter(key_func=get_remote_address)


@router.get("/wallets", response_model=List[WalletResponse])
async def list_wallets(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """All wallets of the user"""
    return await LedgerService(session).list_wallets(user.id)


@router.get("/transactions", response_model=List[TransactionResponse])
async def list_transactions(
    type: Optional[TransactionType] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Transaction history, newest first

    Query params:
        type: Filter by transaction type
        limit: Page size (default: 50)
        offset: Page offset
    """
    return await LedgerService(session).list_transactions(user.id, type, limit=limit, offset=offset)


# ===========================
# ADDRESSES
# ===========================


@router.post("/wallets/generate-address", response_model=AddressResponse)
async def generate_address(
    payload: CurrencyRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create the wallet if needed and return its deposit address"""
    wallet = await WalletService(session).generate_address(user, payload.currency.strip())
    return AddressResponse(currency=wallet.currency, address=wallet.address)


@router.get("/wallets/address/{currency}", response_model=AddressResponse)
async def get_address(
    currency: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    wallet = await WalletService(session).get_address(user, currency)
    return AddressResponse(currency=wallet.currency, address=wallet.address)


# ===========================
# WITHDRAWALS
# ===========================


@router.post("/wallets/withdraw", response_model=WithdrawResponse)
@limiter.limit("20/minute")
async def withdraw(
    request: Request,  # Required by limiter
    payload: WithdrawRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Request a withdrawal

    Debits amount + fee immediately; the transaction stays pending until
    the scheduler confirms it.

    Raises:
        400: invalid amount or insufficient balance
        403: KYC level too low
        404: no wallet in this currency
    """
    result = await WalletService(session).withdraw(
        user,
        currency=payload.currency.strip(),
        amount=payload.amount,
        address=payload.address.strip(),
    )
    platform_scheduler.schedule_withdrawal_confirmation(result["id"])
    return result


# ===========================
# DEPOSITS
# ===========================


@router.post("/wallets/deposit")
async def deposit_webhook(
    request: Request,
    session: AsyncSession = Depends(get_session),
    x_webhook_signature: Optional[str] = Header(None),
):
    """
    Deposit notification from the payment processor

    Body: {"userId", "currency", "amount", "txHash"}

    Returns:
        {"status": "ok", "transactionId": ..., "duplicate": bool}

    Raises:
        403: missing or invalid signature
        400: malformed payload
    """
    body = await request.body()

    if not x_webhook_signature:
        logger.error("Deposit webhook without X-Webhook-Signature header")
        raise InvalidSignature("Missing signature header")

    if not verify_webhook_signature(body, x_webhook_signature):
        logger.error("Deposit webhook with invalid signature")
        raise InvalidSignature()

    try:
        payload = DepositWebhookRequest.model_validate_json(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid deposit payload: {e.error_count()} error(s)")

    transaction, created = await WalletService(session).deposit(
        payload.user_id,
        payload.currency.strip(),
        payload.amount,
        tx_hash=payload.tx_hash,
    )
    return {"status": "ok", "transactionId": transaction.id, "duplicate": not created}


@router.post("/wallets/simulate-deposit", response_model=TransactionResponse)
async def simulate_deposit(
    payload: SimulateDepositRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Credit test funds (disabled in production)"""
    if not ALLOW_SIMULATED_DEPOSITS:
        raise HTTPException(status_code=403, detail="Simulated deposits are disabled")

    return await WalletService(session).simulate_deposit(user, payload.currency.strip(), payload.amount)
