# kiosk_dispatch/transport/security.py
from __future__ import annotations

import hmac

from fastapi import HTTPException, Request

from kiosk_dispatch.config import settings


def _extract_bearer_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth[7:].strip() or None


async def require_metrics_auth(request: Request) -> None:
    """
    Protect /metrics with METRICS_TOKEN when one is configured.
    Without a token the endpoint is open (dev setups).
    """
    if not settings.metrics_token:
        return

    token = _extract_bearer_token(request)
    if not token or not hmac.compare_digest(token, settings.metrics_token):
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


def sanitize_error_message(error: Exception, is_production: bool) -> str:
    """
    Sanitize error messages for external responses.
    In production: Generic messages
    In dev: Detailed messages
    """
    if not is_production:
        return str(error)

    generic_messages = {
        "ValueError": "Invalid input",
        "KeyError": "Invalid request",
        "ConnectionError": "Service temporarily unavailable",
        "TimeoutError": "Request timeout",
    }

    return generic_messages.get(type(error).__name__, "An error occurred")
