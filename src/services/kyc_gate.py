# coding: utf-8
"""
KYC Gate

Decides whether a user's verified KYC level allows an action.
"""

from enum import Enum
from typing import Dict, Optional

from config.platform_config import KYC_REQUIRED_LEVELS
from src.core.exceptions import KycRequired
from src.database.models import User


class KycAction(str, Enum):
    """Actions guarded by KYC"""

    LAUNCH_BOT = "launch_bot"
    WITHDRAW = "withdraw"


class KycGate:
    """Minimum-level check per action"""

    def __init__(self, required_levels: Optional[Dict[str, int]] = None):
        self.required_levels = required_levels or KYC_REQUIRED_LEVELS

    def required_level(self, action: KycAction) -> int:
        return self.required_levels.get(action.value, 1)

    def check(self, user: User, action: KycAction) -> None:
        """
        Raises:
            KycRequired: user.kyc_level below the action's requirement
        """
        required = self.required_level(action)
        if user.kyc_level < required:
            raise KycRequired(required_level=required, current_level=user.kyc_level)
