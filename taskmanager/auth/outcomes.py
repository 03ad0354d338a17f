"""Typed results returned by the auth session manager."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AuthFailureReason(str, Enum):
    """Closed set of expected auth failures."""

    DUPLICATE_USER = "duplicate_user"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_TOKEN = "invalid_token"
    REVOKED = "revoked"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"
    TRANSIENT_STORE_FAILURE = "transient_store_failure"


@dataclass(frozen=True, slots=True)
class AuthFailure:
    reason: AuthFailureReason


@dataclass(frozen=True, slots=True)
class TokenPair:
    """Access/refresh pair handed to the client."""

    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_in: int

    def as_payload(self) -> dict[str, object]:
        return {
            "access_token": self.access_token,
            "token_type": "bearer",
            "expires_in": self.expires_in,
            "refresh_token": self.refresh_token,
            "refresh_expires_in": self.refresh_expires_in,
        }


@dataclass(frozen=True, slots=True)
class UserProfile:
    """Public projection of a user row."""

    id: int
    email: str
    created_at: datetime


SessionOutcome = TokenPair | AuthFailure
ProfileOutcome = UserProfile | AuthFailure
