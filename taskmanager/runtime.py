"""Process-wide runtime state shared by routes and middleware."""

from __future__ import annotations

from datetime import timedelta

from taskmanager.auth.http import parse_bearer_token
from taskmanager.auth.manager import AuthSessionManager
from taskmanager.auth.repository import SqliteCredentialStore
from taskmanager.auth.repository import SqliteRefreshTokenLedger
from taskmanager.auth.schema import init_auth_schema
from taskmanager.core.clock import utc_now
from taskmanager.core.config import Settings
from taskmanager.core.config import load_settings
from taskmanager.core.password import PasswordHasher
from taskmanager.core.tokens import AccessTokenError
from taskmanager.core.tokens import TokenSigner
from taskmanager.core.tokens import subject_user_id
from taskmanager.logging import configure_logging
from taskmanager.logging import get_logger
from taskmanager.ratelimit.gate import AdmissionControlGate
from taskmanager.ratelimit.policy import build_route_policies
from taskmanager.ratelimit.store import InMemoryRateLimitStore
from taskmanager.ratelimit.store import RateLimitStore

logger = get_logger(__name__)


def build_token_signer(settings: Settings) -> TokenSigner:
    return TokenSigner(
        secret=settings.tm_jwt_secret,
        expires_in_seconds=settings.tm_access_token_expire_seconds,
        issuer=settings.tm_jwt_issuer,
        audience=settings.tm_jwt_audience,
    )


def build_auth_manager(settings: Settings) -> AuthSessionManager:
    """Wire the session manager against the SQLite stores."""
    return AuthSessionManager(
        credentials=SqliteCredentialStore(settings),
        ledger=SqliteRefreshTokenLedger(settings),
        signer=build_token_signer(settings),
        password_hasher=PasswordHasher(rounds=settings.tm_bcrypt_rounds),
        refresh_expires_in_seconds=settings.tm_refresh_token_expire_seconds,
    )


def build_admission_gate(
    settings: Settings,
    signer: TokenSigner,
    store: RateLimitStore,
) -> AdmissionControlGate:
    def identify(authorization: str | None) -> str | None:
        token = parse_bearer_token(authorization)
        if token is None:
            return None
        try:
            return str(subject_user_id(signer.decode(token, now=utc_now())))
        except AccessTokenError:
            return None

    return AdmissionControlGate(
        store=store,
        policies=build_route_policies(),
        limit=settings.tm_rate_limit_permit_limit,
        window=timedelta(seconds=settings.tm_rate_limit_window_seconds),
        identify=identify,
    )


settings = load_settings()
token_signer = build_token_signer(settings)
auth_manager = build_auth_manager(settings)
rate_limit_store: RateLimitStore = InMemoryRateLimitStore()
admission_gate = build_admission_gate(settings, token_signer, rate_limit_store)


def startup() -> None:
    """Reload settings, ensure the auth schema exists and reset limiter state."""
    global settings, token_signer, auth_manager, rate_limit_store, admission_gate
    settings = load_settings()
    configure_logging(log_level=settings.tm_log_level, json_output=settings.tm_log_json)
    init_auth_schema(settings)
    token_signer = build_token_signer(settings)
    auth_manager = build_auth_manager(settings)
    rate_limit_store = InMemoryRateLimitStore()
    admission_gate = build_admission_gate(settings, token_signer, rate_limit_store)
    logger.info(
        "runtime_started",
        env=settings.tm_app_env,
        sqlite_path=settings.tm_sqlite_path,
        rate_limit=settings.tm_rate_limit_permit_limit,
        rate_limit_window_seconds=settings.tm_rate_limit_window_seconds,
    )


__all__ = [
    "admission_gate",
    "auth_manager",
    "rate_limit_store",
    "settings",
    "startup",
    "token_signer",
]
