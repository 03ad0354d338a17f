"""Schema bootstrap for auth tables."""

from __future__ import annotations

import sqlite3

from taskmanager.core.config import Settings
from taskmanager.core.db import StoreUnavailableError
from taskmanager.core.db import create_sqlite_connection

# Email uniqueness uses the default BINARY collation, so it is case-sensitive.
CREATE_AUTH_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS refresh_tokens (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL,
    token_hash TEXT NOT NULL UNIQUE,
    expires_at TEXT NOT NULL,
    created_at TEXT NOT NULL,
    revoked_at TEXT NULL,
    FOREIGN KEY (user_id) REFERENCES users(id)
);

CREATE INDEX IF NOT EXISTS idx_refresh_tokens_user_id ON refresh_tokens(user_id);
"""


def init_auth_schema(settings: Settings) -> None:
    """Ensure auth tables/indexes exist."""
    conn = create_sqlite_connection(
        settings.tm_sqlite_path,
        timeout=settings.tm_sqlite_busy_timeout_seconds,
    )
    try:
        conn.executescript(CREATE_AUTH_SCHEMA_SQL)
        conn.commit()
    except sqlite3.OperationalError as exc:
        raise StoreUnavailableError("failed to initialize auth schema") from exc
    finally:
        conn.close()
