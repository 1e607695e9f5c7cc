"""
Core module - domain errors shared by all layers.
"""

from src.core.exceptions import (
    PlatformError,
    PlatformDisabled,
    BotUnavailable,
    KycRequired,
    InsufficientFunds,
    InvalidAmount,
    InvalidState,
    NotFound,
    InvalidSetting,
)

__all__ = [
    "PlatformError",
    "PlatformDisabled",
    "BotUnavailable",
    "KycRequired",
    "InsufficientFunds",
    "InvalidAmount",
    "InvalidState",
    "NotFound",
    "InvalidSetting",
]
