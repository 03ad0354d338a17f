"""In-memory credential store and refresh token ledger.

Used by unit tests and by deployments that do not need persistence across
restarts. A single lock per store makes each operation atomic.
"""

from __future__ import annotations

import dataclasses
import itertools
import threading
from datetime import datetime

from taskmanager.auth.ports import DuplicateEmailError
from taskmanager.auth.ports import NewRefreshToken
from taskmanager.auth.ports import RefreshTokenGrant
from taskmanager.auth.ports import RefreshTokenRecord
from taskmanager.auth.ports import UserRecord
from taskmanager.core.refresh_tokens import hash_refresh_token


class InMemoryCredentialStore:
    """Dict-backed user table with a unique email index.

    ``ledger`` receives the first refresh token written by
    :meth:`insert_user`. The user is only stored once that insert succeeds.
    """

    def __init__(self, ledger: InMemoryRefreshTokenLedger | None = None) -> None:
        self._ledger = ledger
        self._users: dict[int, UserRecord] = {}
        self._ids_by_email: dict[str, int] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def find_user_by_email(self, email: str) -> UserRecord | None:
        with self._lock:
            user_id = self._ids_by_email.get(email)
            return None if user_id is None else self._users[user_id]

    def find_user_by_id(self, user_id: int) -> UserRecord | None:
        with self._lock:
            return self._users.get(user_id)

    def insert_user(
        self,
        *,
        email: str,
        password_hash: str,
        created_at: datetime,
        refresh_token: RefreshTokenGrant | None = None,
    ) -> UserRecord:
        if refresh_token is not None and self._ledger is None:
            raise ValueError("no refresh token ledger attached")
        with self._lock:
            if email in self._ids_by_email:
                raise DuplicateEmailError(email)
            record = UserRecord(
                id=next(self._ids),
                email=email,
                password_hash=password_hash,
                created_at=created_at,
            )
            if refresh_token is not None:
                self._ledger.insert(refresh_token.for_user(record.id))
            self._users[record.id] = record
            self._ids_by_email[email] = record.id
            return record


class InMemoryRefreshTokenLedger:
    """Dict-backed refresh token table supporting conditional revocation."""

    def __init__(self) -> None:
        self._records: dict[int, RefreshTokenRecord] = {}
        self._ids_by_hash: dict[str, int] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        with self._lock:
            record_id = self._ids_by_hash.get(hash_refresh_token(token))
            return None if record_id is None else self._records[record_id]

    def insert(self, record: NewRefreshToken) -> RefreshTokenRecord:
        with self._lock:
            if record.token_hash in self._ids_by_hash:
                raise ValueError("refresh token hash already stored")
            stored = RefreshTokenRecord(
                id=next(self._ids),
                token_hash=record.token_hash,
                user_id=record.user_id,
                created_at=record.created_at,
                expires_at=record.expires_at,
            )
            self._records[stored.id] = stored
            self._ids_by_hash[stored.token_hash] = stored.id
            return stored

    def revoke(self, record_id: int, *, revoked_at: datetime) -> bool:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.revoked:
                return False
            self._records[record_id] = dataclasses.replace(record, revoked_at=revoked_at)
            return True

    def records(self) -> list[RefreshTokenRecord]:
        """Snapshot of all rows ordered by id."""
        with self._lock:
            return [self._records[key] for key in sorted(self._records)]
