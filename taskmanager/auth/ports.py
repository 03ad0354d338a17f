"""Persistence ports consumed by the auth session manager."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from taskmanager.core.db import StoreUnavailableError


class DuplicateEmailError(Exception):
    """Raised when inserting a user whose email is already taken."""


@dataclass(frozen=True, slots=True)
class UserRecord:
    """Stored user row."""

    id: int
    email: str
    password_hash: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class NewRefreshToken:
    """Refresh token row to be inserted; the id is assigned by the ledger."""

    token_hash: str
    user_id: int
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class RefreshTokenGrant:
    """First refresh token of a user that does not have an id yet."""

    token_hash: str
    created_at: datetime
    expires_at: datetime

    def for_user(self, user_id: int) -> NewRefreshToken:
        return NewRefreshToken(
            token_hash=self.token_hash,
            user_id=user_id,
            created_at=self.created_at,
            expires_at=self.expires_at,
        )


@dataclass(frozen=True, slots=True)
class RefreshTokenRecord:
    """Stored refresh token row.

    :ivar token_hash: SHA-256 digest of the opaque token string.
    :ivar revoked_at: ``None`` while active; set once on revocation.
    """

    id: int
    token_hash: str
    user_id: int
    created_at: datetime
    expires_at: datetime
    revoked_at: datetime | None = None

    @property
    def revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class CredentialStore(Protocol):
    """User table operations.

    Every method raises :class:`StoreUnavailableError` when the backing
    store cannot be reached, never a silent ``None``.
    """

    def find_user_by_email(self, email: str) -> UserRecord | None:
        """Return the user with exactly this email (case-sensitive)."""

    def find_user_by_id(self, user_id: int) -> UserRecord | None:
        """Return the user with this id."""

    def insert_user(
        self,
        *,
        email: str,
        password_hash: str,
        created_at: datetime,
        refresh_token: RefreshTokenGrant | None = None,
    ) -> UserRecord:
        """Insert a user. Raises :class:`DuplicateEmailError` on conflict.

        When ``refresh_token`` is given its row is written in the same
        transaction, so either both rows exist afterwards or neither does.
        """


class RefreshTokenLedger(Protocol):
    """Refresh token table operations.

    ``revoke`` MUST be a conditional update so that concurrent rotations of
    one token resolve to exactly one winner.
    """

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        """Look up the row for a plaintext token string."""

    def insert(self, record: NewRefreshToken) -> RefreshTokenRecord:
        """Persist a new row and return it with its id."""

    def revoke(self, record_id: int, *, revoked_at: datetime) -> bool:
        """Revoke a currently active row. :returns: True if this call revoked it."""


__all__ = [
    "CredentialStore",
    "DuplicateEmailError",
    "NewRefreshToken",
    "RefreshTokenGrant",
    "RefreshTokenLedger",
    "RefreshTokenRecord",
    "StoreUnavailableError",
    "UserRecord",
]
