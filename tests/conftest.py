"""Shared fixtures for auth and admission control tests."""

from __future__ import annotations

import os
from collections.abc import Iterator
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from pathlib import Path
from typing import Any

import pytest

# Runtime settings are loaded at import time; keep tests runnable without a real env.
os.environ.setdefault("TM_JWT_SECRET", "test-secret-key-32-bytes-minimum-length")
os.environ.setdefault("TM_BCRYPT_ROUNDS", "4")
os.environ.setdefault("TM_LOG_JSON", "false")

TEST_JWT_SECRET = "test-secret-key-32-bytes-minimum-length"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 2, 14, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def register_payload() -> dict[str, Any]:
    """Default register/login payload used by API tests."""
    return {"email": "alice@example.com", "password": "correct horse"}


@pytest.fixture
def client_factory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Any]:
    """Build TestClients against a fresh SQLite file; env overrides apply per client."""
    from fastapi.testclient import TestClient

    from taskmanager.main import app

    opened: list[TestClient] = []

    def _factory(db_name: str = "api.sqlite3", **env: str) -> TestClient:
        monkeypatch.setenv("TM_SQLITE_PATH", str(tmp_path / db_name))
        monkeypatch.setenv("TM_JWT_SECRET", TEST_JWT_SECRET)
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        client = TestClient(app, raise_server_exceptions=False)
        client.__enter__()
        opened.append(client)
        return client

    yield _factory

    for client in opened:
        client.__exit__(None, None, None)
