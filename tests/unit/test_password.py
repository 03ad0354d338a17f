"""Password hashing contract tests."""

from __future__ import annotations

from taskmanager.core.password import PasswordHasher

HASHER = PasswordHasher(rounds=4)


def test_hash_is_not_plaintext() -> None:
    hashed = HASHER.hash("abc")
    assert hashed != "abc"


def test_verify_matches_original_password() -> None:
    hashed = HASHER.hash("abc")
    assert HASHER.verify("abc", hashed) is True


def test_verify_rejects_wrong_password() -> None:
    hashed = HASHER.hash("abc")
    assert HASHER.verify("wrong", hashed) is False


def test_same_password_hashes_with_distinct_salts() -> None:
    assert HASHER.hash("abc") != HASHER.hash("abc")


def test_verify_rejects_malformed_stored_hash() -> None:
    assert HASHER.verify("abc", "not-a-bcrypt-hash") is False
