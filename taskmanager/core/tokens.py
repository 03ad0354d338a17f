"""JWT access token signing and boundary verification."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any

import jwt

ALGORITHM = "HS256"
DEFAULT_ISSUER = "taskmanager"
DEFAULT_AUDIENCE = "taskmanager-clients"


class AccessTokenError(ValueError):
    """Base access token error."""


class AccessTokenInvalidError(AccessTokenError):
    """Raised when an access token cannot be decoded or is malformed."""


class AccessTokenExpiredError(AccessTokenError):
    """Raised when an access token is expired."""


@dataclass(frozen=True, slots=True)
class AccessTokenClaims:
    """Identity claims embedded in an access token."""

    user_id: int
    email: str


class TokenSigner:
    """Issue short-lived HS256 access tokens from a user's claims."""

    def __init__(
        self,
        *,
        secret: str,
        expires_in_seconds: int,
        issuer: str = DEFAULT_ISSUER,
        audience: str = DEFAULT_AUDIENCE,
    ) -> None:
        self._secret = secret
        self.expires_in_seconds = expires_in_seconds
        self.issuer = issuer
        self.audience = audience

    def issue(self, claims: AccessTokenClaims, *, now: datetime) -> str:
        """Create a signed token carrying sub, email, a fresh jti, iss, aud, iat and exp."""
        exp = int((now + timedelta(seconds=self.expires_in_seconds)).timestamp())
        payload = {
            "sub": str(claims.user_id),
            "email": claims.email,
            "jti": uuid.uuid4().hex,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": int(now.timestamp()),
            "exp": exp,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def decode(self, token: str, *, now: datetime) -> dict[str, Any]:
        """Decode a token signed with this signer's secret, issuer and audience."""
        return decode_access_token(
            token,
            secret=self._secret,
            now=now,
            issuer=self.issuer,
            audience=self.audience,
        )


def decode_access_token(
    token: str,
    *,
    secret: str,
    now: datetime,
    issuer: str = DEFAULT_ISSUER,
    audience: str = DEFAULT_AUDIENCE,
) -> dict[str, Any]:
    """Decode and validate an access token.

    Signature, issuer and audience are checked by PyJWT. Expiry is evaluated
    against ``now``, not the wall clock.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            issuer=issuer,
            audience=audience,
            options={
                "verify_exp": False,
                "verify_iat": False,
                "require": ["sub", "exp", "iss", "aud"],
            },
        )
    except jwt.InvalidTokenError as exc:
        raise AccessTokenInvalidError("invalid access token") from exc

    exp = payload.get("exp")
    if not isinstance(exp, int):
        raise AccessTokenInvalidError("missing or invalid exp")

    now_ts = int(now.astimezone(timezone.utc).timestamp())
    if now_ts >= exp:
        raise AccessTokenExpiredError("access token expired")

    return payload


def subject_user_id(payload: dict[str, Any]) -> int:
    """Extract the integer user id from a decoded payload's ``sub`` claim."""
    try:
        return int(str(payload["sub"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise AccessTokenInvalidError("invalid sub claim") from exc
