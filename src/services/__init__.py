"""Domain services of the bot platform"""
from .ledger_service import LedgerService
from .settings_service import SettingsService
from .bot_catalog import BotCatalog
from .bot_lifecycle_service import BotLifecycleService
from .referral_service import ReferralCommissionService
from .kyc_gate import KycGate
from .kyc_service import KycService
from .wallet_service import WalletService

__all__ = [
    'LedgerService',
    'SettingsService',
    'BotCatalog',
    'BotLifecycleService',
    'ReferralCommissionService',
    'KycGate',
    'KycService',
    'WalletService',
]
