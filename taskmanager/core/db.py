"""SQLite connection helpers for backend persistence."""

from __future__ import annotations

import sqlite3


class StoreUnavailableError(RuntimeError):
    """Raised when the persisted credential store cannot be reached."""


def create_sqlite_connection(path: str, *, timeout: float = 5.0) -> sqlite3.Connection:
    """Create a SQLite connection with foreign key enforcement enabled."""
    try:
        conn = sqlite3.connect(path, timeout=timeout, check_same_thread=False)
        conn.execute("PRAGMA foreign_keys=ON")
    except sqlite3.OperationalError as exc:
        raise StoreUnavailableError(f"cannot open sqlite database at {path!r}") from exc
    return conn


def ping_sqlite(path: str, *, timeout: float = 5.0) -> None:
    """Open the database and run a trivial query against its catalog."""
    conn = create_sqlite_connection(path, timeout=timeout)
    try:
        conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
    except sqlite3.DatabaseError as exc:
        raise StoreUnavailableError(f"sqlite database at {path!r} is not usable") from exc
    finally:
        conn.close()
