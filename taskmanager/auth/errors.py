"""Map auth outcomes to HTTP errors."""

from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException

from taskmanager.auth.http import api_error
from taskmanager.auth.outcomes import AuthFailure
from taskmanager.auth.outcomes import AuthFailureReason
from taskmanager.logging import get_logger

logger = get_logger(__name__)

# Token problems share one client-facing shape; the reason is only logged.
_TOKEN_INVALID = (401, "AUTH_TOKEN_INVALID", "invalid or expired token")

_FAILURE_RESPONSES: dict[AuthFailureReason, tuple[int, str, str]] = {
    AuthFailureReason.DUPLICATE_USER: (400, "AUTH_DUPLICATE_USER", "user already exists"),
    AuthFailureReason.INVALID_CREDENTIALS: (
        401,
        "AUTH_INVALID_CREDENTIALS",
        "invalid email or password",
    ),
    AuthFailureReason.INVALID_TOKEN: _TOKEN_INVALID,
    AuthFailureReason.REVOKED: _TOKEN_INVALID,
    AuthFailureReason.EXPIRED: _TOKEN_INVALID,
    AuthFailureReason.NOT_FOUND: _TOKEN_INVALID,
    AuthFailureReason.TRANSIENT_STORE_FAILURE: (
        503,
        "SERVICE_UNAVAILABLE",
        "service temporarily unavailable",
    ),
}


def raise_for_failure(failure: AuthFailure) -> NoReturn:
    """Raise the HTTP error registered for an auth failure."""
    status_code, code, message = _FAILURE_RESPONSES[failure.reason]
    logger.info("auth_failure_response", reason=failure.reason.value, status_code=status_code)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    raise HTTPException(
        status_code=status_code,
        detail=api_error(code=code, message=message, detail={}),
        headers=headers,
    )


def raise_token_invalid() -> NoReturn:
    """Raise unified invalid-access-token response."""
    raise_for_failure(AuthFailure(AuthFailureReason.INVALID_TOKEN))
