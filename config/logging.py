# coding: utf-8
"""
Logging configuration with loguru for the Trading Bot Platform API

Sinks:
- stdout (colored)
- logs/api_*.log    everything, 7 days
- logs/error_*.log  errors, 30 days
- logs/money_*.log  balance-changing services only, 90 days
- Sentry            errors, when SENTRY_DSN is set
"""
import logging
import sys
from pathlib import Path

import sentry_sdk
from loguru import logger

from config.config import LOG_LEVEL, ENVIRONMENT, SENTRY_DSN


LOGS_DIR = Path(__file__).parent.parent / "logs"

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"

# Services whose INFO lines describe money movements
MONEY_MODULES = (
    "src.services.ledger_service",
    "src.services.wallet_service",
    "src.services.bot_lifecycle_service",
    "src.services.referral_service",
)


def _is_money_record(record) -> bool:
    return record["name"] in MONEY_MODULES


def setup_logging() -> None:
    """Replace loguru's default handler with the platform sinks"""
    logger.remove()
    LOGS_DIR.mkdir(exist_ok=True)

    logger.add(
        sys.stdout,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        level=LOG_LEVEL,
        colorize=True,
    )

    logger.add(
        LOGS_DIR / "api_{time:YYYY-MM-DD}.log",
        format=FILE_FORMAT,
        level="DEBUG",
        rotation="00:00",
        retention="7 days",
        compression="zip",
        encoding="utf-8",
    )

    logger.add(
        LOGS_DIR / "error_{time:YYYY-MM-DD}.log",
        format=FILE_FORMAT,
        level="ERROR",
        rotation="00:00",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
    )

    # Audit trail for support: launches, stops, deposits, withdrawals, commissions
    logger.add(
        LOGS_DIR / "money_{time:YYYY-MM-DD}.log",
        format=FILE_FORMAT,
        level="INFO",
        filter=_is_money_record,
        rotation="00:00",
        retention="90 days",
        compression="zip",
        encoding="utf-8",
    )

    if SENTRY_DSN:
        logger.add(sentry_sink, level="ERROR", format="{message}")

    # SQLAlchemy echoes every statement at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logger.info(f"Logging configured | Environment: {ENVIRONMENT} | Level: {LOG_LEVEL}")


def sentry_sink(message):
    """Forward ERROR/CRITICAL records (and their exceptions) to Sentry"""
    record = message.record
    extras = {
        "module": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    if record["exception"]:
        sentry_sdk.capture_exception(record["exception"].value)
    else:
        level = "fatal" if record["level"].name == "CRITICAL" else "error"
        sentry_sdk.capture_message(record["message"], level=level, extras=extras)
