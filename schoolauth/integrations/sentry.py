# =============================================================================
# Sentry Error Tracking Integration
# =============================================================================
#
# Setup:
#   1. Create a Python project at sentry.io
#   2. Copy the DSN to .env: SENTRY_DSN=https://...@sentry.io/...
#
# init_sentry() is called from the app lifespan (schoolauth/api/app.py).
# Rejected logins and tokens are expected traffic and are not reported.
#
# =============================================================================

from __future__ import annotations

import logging

import sentry_sdk
from fastapi import HTTPException
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from schoolauth.config import Settings
from schoolauth.core.errors import AuthError, ConfigurationError

logger = logging.getLogger(__name__)

EXPECTED_STATUS_CODES = (400, 401, 403, 404, 422)
SENSITIVE_HEADERS = ("authorization", "cookie", "x-api-key")


def init_sentry(settings: Settings) -> bool:
    """
    Initialize Sentry error tracking.

    Returns True if initialized, False if skipped.
    """
    if not settings.sentry_dsn:
        logger.info("SENTRY_DSN not set - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR,
            ),
        ],
        # Don't send PII by default
        send_default_pii=False,
        before_send=filter_event,
    )

    logger.info(f"Sentry initialized for {settings.environment}")
    return True


def filter_event(event: dict, hint: dict) -> dict | None:
    """Drop expected auth failures and scrub credentials from requests."""
    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]

        if isinstance(exc_value, HTTPException) and exc_value.status_code in EXPECTED_STATUS_CODES:
            return None
        if isinstance(exc_value, AuthError) and not isinstance(exc_value, ConfigurationError):
            return None

    headers = event.get("request", {}).get("headers")
    if isinstance(headers, dict):
        for key in list(headers.keys()):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = "[Filtered]"

    return event
