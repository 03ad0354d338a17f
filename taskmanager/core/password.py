"""Password hashing helpers for auth services."""

from __future__ import annotations

from passlib.context import CryptContext
from passlib.exc import UnknownHashError

DEFAULT_BCRYPT_ROUNDS = 12


class PasswordHasher:
    """One-way salted password hashing backed by a bcrypt passlib context.

    Hashing is CPU-bound and stateless; callers must not hold shared locks
    while calling into it.
    """

    def __init__(self, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, plain_password: str) -> str:
        """Hash plaintext password using bcrypt."""
        return self._context.hash(plain_password)

    def verify(self, plain_password: str, password_hash: str) -> bool:
        """Verify plaintext password against a stored hash."""
        try:
            return self._context.verify(plain_password, password_hash)
        except (UnknownHashError, ValueError):
            # Corrupt or foreign hash rows never authenticate.
            return False
