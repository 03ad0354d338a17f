"""Auth session lifecycle: register, login, refresh rotation, logout, profile."""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta

from taskmanager.auth.outcomes import AuthFailure
from taskmanager.auth.outcomes import AuthFailureReason
from taskmanager.auth.outcomes import ProfileOutcome
from taskmanager.auth.outcomes import SessionOutcome
from taskmanager.auth.outcomes import TokenPair
from taskmanager.auth.outcomes import UserProfile
from taskmanager.auth.ports import CredentialStore
from taskmanager.auth.ports import DuplicateEmailError
from taskmanager.auth.ports import RefreshTokenGrant
from taskmanager.auth.ports import RefreshTokenLedger
from taskmanager.auth.ports import UserRecord
from taskmanager.core.clock import Clock
from taskmanager.core.clock import utc_now
from taskmanager.core.db import StoreUnavailableError
from taskmanager.core.password import PasswordHasher
from taskmanager.core.refresh_tokens import generate_refresh_token
from taskmanager.core.refresh_tokens import hash_refresh_token
from taskmanager.core.tokens import AccessTokenClaims
from taskmanager.core.tokens import TokenSigner
from taskmanager.logging import get_logger

logger = get_logger(__name__)

_TRANSIENT = AuthFailure(AuthFailureReason.TRANSIENT_STORE_FAILURE)


class AuthSessionManager:
    """Orchestrates credential checks and token issuance.

    Expected failures come back as :class:`AuthFailure` values rather than
    exceptions; the HTTP layer decides how to present them. An unreachable
    store always surfaces as ``TRANSIENT_STORE_FAILURE``.
    """

    def __init__(
        self,
        *,
        credentials: CredentialStore,
        ledger: RefreshTokenLedger,
        signer: TokenSigner,
        password_hasher: PasswordHasher,
        refresh_expires_in_seconds: int,
        clock: Clock = utc_now,
    ) -> None:
        self._credentials = credentials
        self._ledger = ledger
        self._signer = signer
        self._password_hasher = password_hasher
        self._refresh_expires_in_seconds = refresh_expires_in_seconds
        self._clock = clock

    def register(self, email: str, password: str) -> SessionOutcome:
        """Create a user together with its first refresh token.

        Both rows are written atomically, so a transient failure leaves no
        user behind and the same registration can simply be retried.
        """
        try:
            # Precondition check; the unique index still catches a racing insert.
            if self._credentials.find_user_by_email(email) is not None:
                logger.info("auth_register_rejected", reason="duplicate_user")
                return AuthFailure(AuthFailureReason.DUPLICATE_USER)

            password_hash = self._password_hasher.hash(password)
            now = self._clock()
            refresh_token = generate_refresh_token()
            try:
                user = self._credentials.insert_user(
                    email=email,
                    password_hash=password_hash,
                    created_at=now,
                    refresh_token=self._refresh_grant(refresh_token, now=now),
                )
            except DuplicateEmailError:
                logger.info("auth_register_rejected", reason="duplicate_user_race")
                return AuthFailure(AuthFailureReason.DUPLICATE_USER)
        except StoreUnavailableError as exc:
            logger.warning("auth_store_unavailable", operation="register", error=str(exc))
            return _TRANSIENT

        logger.info("auth_registered", user_id=user.id)
        return self._token_pair(user, refresh_token, now=now)

    def login(self, email: str, password: str) -> SessionOutcome:
        try:
            user = self._credentials.find_user_by_email(email)
            # Unknown email and wrong password share one outcome.
            if user is None or not self._password_hasher.verify(password, user.password_hash):
                logger.info("auth_login_rejected", user_known=user is not None)
                return AuthFailure(AuthFailureReason.INVALID_CREDENTIALS)
            pair = self._issue_session(user)
        except StoreUnavailableError as exc:
            logger.warning("auth_store_unavailable", operation="login", error=str(exc))
            return _TRANSIENT

        logger.info("auth_logged_in", user_id=user.id)
        return pair

    def refresh(self, refresh_token: str) -> SessionOutcome:
        """Redeem a refresh token exactly once and rotate it."""
        now = self._clock()
        try:
            record = self._ledger.find_by_token(refresh_token)
            if record is None:
                return self._refresh_rejected(AuthFailureReason.INVALID_TOKEN)
            if record.revoked:
                return self._refresh_rejected(AuthFailureReason.REVOKED, token_id=record.id)
            if record.is_expired(now):
                return self._refresh_rejected(AuthFailureReason.EXPIRED, token_id=record.id)

            if not self._ledger.revoke(record.id, revoked_at=now):
                # Another request redeemed the token between lookup and revoke.
                return self._refresh_rejected(AuthFailureReason.REVOKED, token_id=record.id)

            user = self._credentials.find_user_by_id(record.user_id)
            if user is None:
                return self._refresh_rejected(AuthFailureReason.INVALID_TOKEN, token_id=record.id)

            pair = self._issue_session(user)
        except StoreUnavailableError as exc:
            logger.warning("auth_store_unavailable", operation="refresh", error=str(exc))
            return _TRANSIENT

        logger.info("auth_refresh_rotated", user_id=user.id, revoked_token_id=record.id)
        return pair

    def logout(self, refresh_token: str) -> AuthFailure | None:
        """Revoke a refresh token; unknown or revoked tokens are a no-op."""
        if not refresh_token:
            return None
        try:
            record = self._ledger.find_by_token(refresh_token)
            if record is None or record.revoked:
                return None
            revoked = self._ledger.revoke(record.id, revoked_at=self._clock())
        except StoreUnavailableError as exc:
            logger.warning("auth_store_unavailable", operation="logout", error=str(exc))
            return _TRANSIENT

        if revoked:
            logger.info("auth_logged_out", user_id=record.user_id, revoked_token_id=record.id)
        return None

    def get_current_user(self, user_id: int) -> ProfileOutcome:
        try:
            user = self._credentials.find_user_by_id(user_id)
        except StoreUnavailableError as exc:
            logger.warning("auth_store_unavailable", operation="current_user", error=str(exc))
            return _TRANSIENT

        if user is None:
            return AuthFailure(AuthFailureReason.NOT_FOUND)
        return UserProfile(id=user.id, email=user.email, created_at=user.created_at)

    def _issue_session(self, user: UserRecord) -> TokenPair:
        """Persist a brand-new refresh token row and sign an access token."""
        now = self._clock()
        refresh_token = generate_refresh_token()
        self._ledger.insert(self._refresh_grant(refresh_token, now=now).for_user(user.id))
        return self._token_pair(user, refresh_token, now=now)

    def _refresh_grant(self, refresh_token: str, *, now: datetime) -> RefreshTokenGrant:
        return RefreshTokenGrant(
            token_hash=hash_refresh_token(refresh_token),
            created_at=now,
            expires_at=now + timedelta(seconds=self._refresh_expires_in_seconds),
        )

    def _token_pair(self, user: UserRecord, refresh_token: str, *, now: datetime) -> TokenPair:
        access_token = self._signer.issue(
            AccessTokenClaims(user_id=user.id, email=user.email),
            now=now,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self._signer.expires_in_seconds,
            refresh_expires_in=self._refresh_expires_in_seconds,
        )

    @staticmethod
    def _refresh_rejected(reason: AuthFailureReason, *, token_id: int | None = None) -> AuthFailure:
        logger.info("auth_refresh_rejected", reason=reason.value, token_id=token_id)
        return AuthFailure(reason)
