"""
Domain errors

Every business rule violation raises a PlatformError subclass. The API
layer turns them into JSON responses with `status_code` (see the
handler in api_server.py), services never build HTTP responses.
"""

from typing import Any, Dict, Optional


class PlatformError(Exception):
    """Base class for expected, user-facing errors"""

    status_code: int = 400
    code: str = "platform_error"
    default_message: str = "Request could not be processed"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.details}


class PlatformDisabled(PlatformError):
    """Bots are globally disabled by an admin"""

    status_code = 403
    code = "platform_disabled"
    default_message = "Bots are currently disabled"


class BotUnavailable(PlatformError):
    """Bot does not exist (404) or is disabled (403)"""

    status_code = 403
    code = "bot_unavailable"
    default_message = "This bot is currently disabled"

    def __init__(self, message: Optional[str] = None, missing: bool = False, **details: Any):
        if missing:
            self.status_code = 404
            message = message or "Bot not found"
        super().__init__(message, **details)


class KycRequired(PlatformError):
    """User's verified KYC level is below what the action needs"""

    status_code = 403
    code = "kyc_required"

    def __init__(self, required_level: int, current_level: int, message: Optional[str] = None):
        self.required_level = required_level
        self.current_level = current_level
        super().__init__(
            message or f"KYC level {required_level} verification required",
            requiredLevel=required_level,
            currentLevel=current_level,
        )


class InsufficientFunds(PlatformError):
    status_code = 400
    code = "insufficient_funds"
    default_message = "Insufficient balance"


class InvalidAmount(PlatformError):
    status_code = 400
    code = "invalid_amount"
    default_message = "Amount must be greater than 0"


class InvalidState(PlatformError):
    """Operation not allowed in the entity's current state"""

    status_code = 400
    code = "invalid_state"
    default_message = "Operation not allowed in the current state"


class NotFound(PlatformError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class InvalidSetting(PlatformError):
    status_code = 400
    code = "invalid_setting"
    default_message = "Invalid setting value"


class InvalidSignature(PlatformError):
    status_code = 403
    code = "invalid_signature"
    default_message = "Invalid signature"


class InvalidReferralCode(PlatformError):
    status_code = 400
    code = "invalid_referral_code"
    default_message = "Invalid referral code"


class AuthenticationError(PlatformError):
    status_code = 401
    code = "unauthorized"
    default_message = "Not authenticated"


class AccountBlocked(PlatformError):
    status_code = 403
    code = "account_blocked"
    default_message = "Account is blocked"


class PermissionDenied(PlatformError):
    status_code = 403
    code = "forbidden"
    default_message = "Admin privileges required"


class Conflict(PlatformError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists"
