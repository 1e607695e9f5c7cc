# coding: utf-8
"""
Sentry configuration for error monitoring and tracking
"""
import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from loguru import logger

from config.config import SENTRY_DSN, ENVIRONMENT


# Headers and body fields that never leave the server
SENSITIVE_HEADERS = ("Authorization", "X-Webhook-Signature")
SENSITIVE_FIELDS = ("password", "confirmPassword", "address")


def init_sentry() -> None:
    """
    Initialize Sentry SDK for error monitoring

    No-op when SENTRY_DSN is empty (local development, tests).
    """
    if not SENTRY_DSN:
        logger.warning("SENTRY_DSN not configured - error monitoring disabled")
        return

    try:
        sentry_sdk.init(
            dsn=SENTRY_DSN,
            environment=ENVIRONMENT,
            integrations=[
                AsyncioIntegration(),
                SqlalchemyIntegration(),
                FastApiIntegration(),
            ],
            traces_sample_rate=0.1 if ENVIRONMENT == "production" else 1.0,
            sample_rate=1.0,
            attach_stacktrace=True,
            send_default_pii=False,
            max_breadcrumbs=50,
            before_send=before_send_hook,
        )

        logger.info(f"Sentry initialized successfully (Environment: {ENVIRONMENT})")

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")


def before_send_hook(event, hint):
    """
    Strip credentials, webhook signatures and payout addresses from events
    """
    if 'exc_info' in hint:
        exc_type, exc_value, tb = hint['exc_info']
        if isinstance(exc_value, KeyboardInterrupt):
            return None

    request = event.get('request')
    if request:
        headers = request.get('headers', {})
        for header in SENSITIVE_HEADERS:
            if header in headers:
                headers[header] = '[Filtered]'

        data = request.get('data')
        if isinstance(data, dict):
            for field in SENSITIVE_FIELDS:
                if field in data:
                    data[field] = '[Filtered]'

    return event


def set_user_context(user_id: int, email: str = None):
    """
    Set user context for Sentry events

    Args:
        user_id: Platform user ID
        email: Not sent (send_default_pii=False), only used as a label fallback
    """
    sentry_sdk.set_user({
        "id": str(user_id),
        "username": f"user_{user_id}" if not email else email.split("@")[0],
    })
