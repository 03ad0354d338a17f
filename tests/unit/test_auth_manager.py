"""Auth session manager tests against in-memory stores."""

from __future__ import annotations

from datetime import timedelta

import pytest

from taskmanager.auth.manager import AuthSessionManager
from taskmanager.auth.memory import InMemoryCredentialStore
from taskmanager.auth.memory import InMemoryRefreshTokenLedger
from taskmanager.auth.outcomes import AuthFailure
from taskmanager.auth.outcomes import AuthFailureReason
from taskmanager.auth.outcomes import TokenPair
from taskmanager.auth.outcomes import UserProfile
from taskmanager.core.db import StoreUnavailableError
from taskmanager.core.password import PasswordHasher
from taskmanager.core.refresh_tokens import hash_refresh_token
from taskmanager.core.tokens import TokenSigner

SECRET = "unit-test-secret-key-32-bytes-minimum"
REFRESH_TTL = 7 * 24 * 3600


@pytest.fixture
def ledger() -> InMemoryRefreshTokenLedger:
    return InMemoryRefreshTokenLedger()


@pytest.fixture
def credentials(ledger) -> InMemoryCredentialStore:
    return InMemoryCredentialStore(ledger)


@pytest.fixture
def manager(credentials, ledger, clock) -> AuthSessionManager:
    return AuthSessionManager(
        credentials=credentials,
        ledger=ledger,
        signer=TokenSigner(secret=SECRET, expires_in_seconds=3600),
        password_hasher=PasswordHasher(rounds=4),
        refresh_expires_in_seconds=REFRESH_TTL,
        clock=clock,
    )


def _pair(outcome) -> TokenPair:
    assert isinstance(outcome, TokenPair), outcome
    return outcome


def test_register_returns_token_pair_and_persists_refresh_row(manager, ledger, credentials) -> None:
    pair = _pair(manager.register("alice@example.com", "pw"))

    user = credentials.find_user_by_email("alice@example.com")
    assert user is not None
    assert user.password_hash != "pw"
    rows = ledger.records()
    assert len(rows) == 1
    assert rows[0].user_id == user.id
    assert rows[0].token_hash == hash_refresh_token(pair.refresh_token)
    assert rows[0].revoked is False
    assert pair.expires_in == 3600
    assert pair.refresh_expires_in == REFRESH_TTL


def test_register_same_email_twice_is_duplicate(manager) -> None:
    _pair(manager.register("alice@example.com", "pw"))

    outcome = manager.register("alice@example.com", "other")

    assert outcome == AuthFailure(AuthFailureReason.DUPLICATE_USER)


def test_email_uniqueness_is_case_sensitive(manager) -> None:
    _pair(manager.register("Tom@example.com", "pw"))
    _pair(manager.register("tom@example.com", "pw"))


def test_register_race_on_insert_is_reported_as_duplicate(manager, credentials, monkeypatch) -> None:
    _pair(manager.register("alice@example.com", "pw"))
    # Simulate a concurrent registration that passed the precondition check.
    monkeypatch.setattr(credentials, "find_user_by_email", lambda email: None)

    assert manager.register("alice@example.com", "pw") == AuthFailure(
        AuthFailureReason.DUPLICATE_USER
    )


def test_login_failure_is_uniform_for_unknown_email_and_wrong_password(manager) -> None:
    _pair(manager.register("alice@example.com", "pw"))

    unknown = manager.login("nobody@example.com", "pw")
    wrong = manager.login("alice@example.com", "nope")

    assert unknown == wrong == AuthFailure(AuthFailureReason.INVALID_CREDENTIALS)


def test_login_issues_fresh_refresh_token_and_keeps_other_sessions(manager, ledger) -> None:
    first = _pair(manager.register("alice@example.com", "pw"))
    second = _pair(manager.login("alice@example.com", "pw"))

    assert second.refresh_token != first.refresh_token
    assert [row.revoked for row in ledger.records()] == [False, False]
    _pair(manager.refresh(first.refresh_token))


def test_refresh_rotates_and_old_token_becomes_revoked(manager, ledger) -> None:
    issued = _pair(manager.register("alice@example.com", "pw"))

    rotated = _pair(manager.refresh(issued.refresh_token))

    assert rotated.refresh_token != issued.refresh_token
    assert manager.refresh(issued.refresh_token) == AuthFailure(AuthFailureReason.REVOKED)
    old_row, new_row = ledger.records()
    assert old_row.revoked and not new_row.revoked
    _pair(manager.refresh(rotated.refresh_token))


def test_refresh_tokens_are_never_reissued(manager) -> None:
    seen = set()
    pair = _pair(manager.register("alice@example.com", "pw"))
    seen.add(pair.refresh_token)
    for _ in range(5):
        pair = _pair(manager.refresh(pair.refresh_token))
        assert pair.refresh_token not in seen
        seen.add(pair.refresh_token)
        login = _pair(manager.login("alice@example.com", "pw"))
        assert login.refresh_token not in seen
        seen.add(login.refresh_token)


def test_refresh_unknown_token_is_invalid(manager) -> None:
    assert manager.refresh("never-issued") == AuthFailure(AuthFailureReason.INVALID_TOKEN)


def test_refresh_after_expiry_is_expired(manager, clock) -> None:
    pair = _pair(manager.register("alice@example.com", "pw"))

    clock.advance(seconds=REFRESH_TTL)

    assert manager.refresh(pair.refresh_token) == AuthFailure(AuthFailureReason.EXPIRED)


def test_refresh_just_before_expiry_succeeds(manager, clock) -> None:
    pair = _pair(manager.register("alice@example.com", "pw"))

    clock.advance(seconds=REFRESH_TTL - 1)

    _pair(manager.refresh(pair.refresh_token))


def test_logout_then_refresh_is_revoked(manager) -> None:
    pair = _pair(manager.register("alice@example.com", "pw"))

    assert manager.logout(pair.refresh_token) is None

    assert manager.refresh(pair.refresh_token) == AuthFailure(AuthFailureReason.REVOKED)


def test_logout_is_idempotent_and_accepts_unknown_tokens(manager, ledger) -> None:
    pair = _pair(manager.register("alice@example.com", "pw"))

    assert manager.logout(pair.refresh_token) is None
    revoked_at = ledger.records()[0].revoked_at
    assert manager.logout(pair.refresh_token) is None
    assert manager.logout("never-issued") is None

    assert ledger.records()[0].revoked_at == revoked_at


def test_get_current_user(manager, credentials) -> None:
    _pair(manager.register("alice@example.com", "pw"))
    user = credentials.find_user_by_email("alice@example.com")

    profile = manager.get_current_user(user.id)

    assert profile == UserProfile(id=user.id, email="alice@example.com", created_at=user.created_at)
    assert manager.get_current_user(999) == AuthFailure(AuthFailureReason.NOT_FOUND)


class _UnavailableLedger(InMemoryRefreshTokenLedger):
    def find_by_token(self, token):
        raise StoreUnavailableError("ledger down")

    def insert(self, record):
        raise StoreUnavailableError("ledger down")


class _UnavailableCredentials(InMemoryCredentialStore):
    def find_user_by_email(self, email):
        raise StoreUnavailableError("users down")

    def find_user_by_id(self, user_id):
        raise StoreUnavailableError("users down")


class _FlakyLedger(InMemoryRefreshTokenLedger):
    """Ledger whose first ``insert`` fails as if the database were locked."""

    def __init__(self) -> None:
        super().__init__()
        self.failures_left = 1

    def insert(self, record):
        if self.failures_left:
            self.failures_left -= 1
            raise StoreUnavailableError("database is locked")
        return super().insert(record)


def _manager_for(credentials, ledger, clock) -> AuthSessionManager:
    return AuthSessionManager(
        credentials=credentials,
        ledger=ledger,
        signer=TokenSigner(secret=SECRET, expires_in_seconds=3600),
        password_hasher=PasswordHasher(rounds=4),
        refresh_expires_in_seconds=REFRESH_TTL,
        clock=clock,
    )


def test_unreachable_store_is_transient_not_not_found(clock) -> None:
    ledger = _UnavailableLedger()
    manager = _manager_for(InMemoryCredentialStore(ledger), ledger, clock)
    transient = AuthFailure(AuthFailureReason.TRANSIENT_STORE_FAILURE)

    assert manager.register("alice@example.com", "pw") == transient
    assert manager.refresh("anything") == transient
    assert manager.logout("anything") == transient


def test_unreachable_user_table_is_transient(clock) -> None:
    ledger = InMemoryRefreshTokenLedger()
    manager = _manager_for(_UnavailableCredentials(ledger), ledger, clock)
    transient = AuthFailure(AuthFailureReason.TRANSIENT_STORE_FAILURE)

    assert manager.register("alice@example.com", "pw") == transient
    assert manager.login("alice@example.com", "pw") == transient
    assert manager.get_current_user(1) == transient


def test_register_retry_after_transient_token_write_succeeds(clock) -> None:
    ledger = _FlakyLedger()
    credentials = InMemoryCredentialStore(ledger)
    manager = _manager_for(credentials, ledger, clock)

    first = manager.register("alice@example.com", "pw")

    assert first == AuthFailure(AuthFailureReason.TRANSIENT_STORE_FAILURE)
    assert credentials.find_user_by_email("alice@example.com") is None
    assert ledger.records() == []

    retried = _pair(manager.register("alice@example.com", "pw"))
    assert ledger.records()[0].token_hash == hash_refresh_token(retried.refresh_token)
    _pair(manager.login("alice@example.com", "pw"))
