"""Opaque refresh token material."""

from __future__ import annotations

import hashlib
import secrets

# Bytes of entropy behind each refresh token string.
REFRESH_TOKEN_BYTES = 64


def generate_refresh_token() -> str:
    """Return a new URL-safe refresh token string."""
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


def hash_refresh_token(plain_token: str) -> str:
    """Digest stored in place of the plaintext token."""
    return hashlib.sha256(plain_token.encode("utf-8")).hexdigest()
