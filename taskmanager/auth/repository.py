"""SQLite-backed credential store and refresh token ledger."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from taskmanager.auth.ports import DuplicateEmailError
from taskmanager.auth.ports import NewRefreshToken
from taskmanager.auth.ports import RefreshTokenGrant
from taskmanager.auth.ports import RefreshTokenRecord
from taskmanager.auth.ports import UserRecord
from taskmanager.core.clock import from_utc_iso
from taskmanager.core.clock import to_utc_iso
from taskmanager.core.config import Settings
from taskmanager.core.db import StoreUnavailableError
from taskmanager.core.db import create_sqlite_connection
from taskmanager.core.refresh_tokens import hash_refresh_token


@contextmanager
def _connection(settings: Settings) -> Iterator[sqlite3.Connection]:
    conn = create_sqlite_connection(
        settings.tm_sqlite_path,
        timeout=settings.tm_sqlite_busy_timeout_seconds,
    )
    try:
        yield conn
    except sqlite3.OperationalError as exc:
        conn.rollback()
        raise StoreUnavailableError(str(exc)) from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _user_from_row(row: tuple) -> UserRecord:
    user_id, email, password_hash, created_at = row
    return UserRecord(
        id=int(user_id),
        email=str(email),
        password_hash=str(password_hash),
        created_at=from_utc_iso(str(created_at)),
    )


def _refresh_token_from_row(row: tuple) -> RefreshTokenRecord:
    token_id, token_hash, user_id, created_at, expires_at, revoked_at = row
    return RefreshTokenRecord(
        id=int(token_id),
        token_hash=str(token_hash),
        user_id=int(user_id),
        created_at=from_utc_iso(str(created_at)),
        expires_at=from_utc_iso(str(expires_at)),
        revoked_at=None if revoked_at is None else from_utc_iso(str(revoked_at)),
    )


def _insert_refresh_token_row(conn: sqlite3.Connection, record: NewRefreshToken) -> RefreshTokenRecord:
    """Insert without committing; the caller owns the transaction."""
    created_at_iso = to_utc_iso(record.created_at)
    expires_at_iso = to_utc_iso(record.expires_at)
    cursor = conn.execute(
        """
        INSERT INTO refresh_tokens (user_id, token_hash, expires_at, created_at, revoked_at)
        VALUES (?, ?, ?, ?, NULL)
        """,
        (record.user_id, record.token_hash, expires_at_iso, created_at_iso),
    )
    return RefreshTokenRecord(
        id=int(cursor.lastrowid),
        token_hash=record.token_hash,
        user_id=record.user_id,
        created_at=from_utc_iso(created_at_iso),
        expires_at=from_utc_iso(expires_at_iso),
    )


class SqliteCredentialStore:
    """User rows in the ``users`` table."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def find_user_by_email(self, email: str) -> UserRecord | None:
        with _connection(self._settings) as conn:
            row = conn.execute(
                """
                SELECT id, email, password_hash, created_at
                FROM users
                WHERE email = ?
                """,
                (email,),
            ).fetchone()
        return None if row is None else _user_from_row(row)

    def find_user_by_id(self, user_id: int) -> UserRecord | None:
        with _connection(self._settings) as conn:
            row = conn.execute(
                """
                SELECT id, email, password_hash, created_at
                FROM users
                WHERE id = ?
                """,
                (user_id,),
            ).fetchone()
        return None if row is None else _user_from_row(row)

    def insert_user(
        self,
        *,
        email: str,
        password_hash: str,
        created_at: datetime,
        refresh_token: RefreshTokenGrant | None = None,
    ) -> UserRecord:
        created_at_iso = to_utc_iso(created_at)
        with _connection(self._settings) as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (email, password_hash, created_at)
                    VALUES (?, ?, ?)
                    """,
                    (email, password_hash, created_at_iso),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateEmailError(email) from exc
            user_id = int(cursor.lastrowid)
            if refresh_token is not None:
                _insert_refresh_token_row(conn, refresh_token.for_user(user_id))
            conn.commit()
        return UserRecord(
            id=user_id,
            email=email,
            password_hash=password_hash,
            created_at=from_utc_iso(created_at_iso),
        )


class SqliteRefreshTokenLedger:
    """Refresh token rows in the ``refresh_tokens`` table.

    Rows are never deleted; revocation only sets ``revoked_at`` once.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        with _connection(self._settings) as conn:
            row = conn.execute(
                """
                SELECT id, token_hash, user_id, created_at, expires_at, revoked_at
                FROM refresh_tokens
                WHERE token_hash = ?
                """,
                (hash_refresh_token(token),),
            ).fetchone()
        return None if row is None else _refresh_token_from_row(row)

    def insert(self, record: NewRefreshToken) -> RefreshTokenRecord:
        with _connection(self._settings) as conn:
            stored = _insert_refresh_token_row(conn, record)
            conn.commit()
        return stored

    def revoke(self, record_id: int, *, revoked_at: datetime) -> bool:
        with _connection(self._settings) as conn:
            cursor = conn.execute(
                """
                UPDATE refresh_tokens
                SET revoked_at = ?
                WHERE id = ? AND revoked_at IS NULL
                """,
                (to_utc_iso(revoked_at), record_id),
            )
            conn.commit()
            return cursor.rowcount == 1
