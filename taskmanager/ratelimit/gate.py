"""Admission control: per-route rate limiting at the request boundary."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from fastapi import Request
from fastapi import Response
from fastapi.responses import JSONResponse

from taskmanager.auth.http import api_error
from taskmanager.auth.http import handle_unexpected_exception
from taskmanager.logging import get_logger
from taskmanager.ratelimit.policy import RateLimitScope
from taskmanager.ratelimit.policy import RoutePolicyTable
from taskmanager.ratelimit.policy import route_key
from taskmanager.ratelimit.store import RateLimitStore
from taskmanager.ratelimit.store import RateLimitStoreUnavailableError

logger = get_logger(__name__)

LIMIT_HEADER = "X-RateLimit-Limit"
REMAINING_HEADER = "X-RateLimit-Remaining"

# Methods that pass through when the limiter itself is down.
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

IdentityResolver = Callable[[str | None], str | None]


class AdmissionStatus(str, Enum):
    NOT_LIMITED = "not_limited"
    ALLOWED = "allowed"
    REJECTED = "rejected"
    FAILED_OPEN = "failed_open"
    FAILED_CLOSED = "failed_closed"


@dataclass(frozen=True, slots=True)
class Admission:
    status: AdmissionStatus
    key: str | None = None
    limit: int | None = None
    remaining: int | None = None

    @property
    def proceed(self) -> bool:
        return self.status in {
            AdmissionStatus.NOT_LIMITED,
            AdmissionStatus.ALLOWED,
            AdmissionStatus.FAILED_OPEN,
        }

    def headers(self) -> dict[str, str]:
        if self.limit is None or self.remaining is None:
            return {}
        return {LIMIT_HEADER: str(self.limit), REMAINING_HEADER: str(max(0, self.remaining))}


class AdmissionControlGate:
    """Decide whether a request may reach its handler.

    Routes are looked up by exact ``(method, path)`` in the policy table.
    Per-user routes key on ``user:<sub>`` when the bearer token resolves to
    a subject and fall back to ``ip:<address>`` otherwise.

    When the store is unavailable the gate fails open for safe methods and
    closed for everything else.
    """

    def __init__(
        self,
        *,
        store: RateLimitStore,
        policies: RoutePolicyTable,
        limit: int,
        window: timedelta,
        identify: IdentityResolver,
    ) -> None:
        self._store = store
        self._policies = policies
        self.limit = limit
        self.window = window
        self._identify = identify

    def admit(
        self,
        *,
        method: str,
        path: str,
        remote_address: str | None,
        authorization: str | None,
    ) -> Admission:
        policy = self._policies.get(route_key(method, path))
        if policy is None:
            return Admission(AdmissionStatus.NOT_LIMITED)

        key = self._key_for(policy.scope, remote_address, authorization)
        try:
            decision = self._store.try_consume(key, self.limit, self.window)
        except RateLimitStoreUnavailableError as exc:
            if method.upper() in SAFE_METHODS:
                logger.warning("rate_limit_store_unavailable", posture="fail_open", key=key, error=str(exc))
                return Admission(AdmissionStatus.FAILED_OPEN, key=key)
            logger.error("rate_limit_store_unavailable", posture="fail_closed", key=key, error=str(exc))
            return Admission(AdmissionStatus.FAILED_CLOSED, key=key)

        if not decision.allowed:
            logger.info("rate_limit_exceeded", key=key, path=path, limit=self.limit)
            return Admission(AdmissionStatus.REJECTED, key=key, limit=self.limit, remaining=0)
        return Admission(
            AdmissionStatus.ALLOWED,
            key=key,
            limit=self.limit,
            remaining=decision.remaining,
        )

    def _key_for(
        self,
        scope: RateLimitScope,
        remote_address: str | None,
        authorization: str | None,
    ) -> str:
        if scope is RateLimitScope.USER:
            subject = self._identify(authorization)
            if subject is not None:
                return f"user:{subject}"
        return f"ip:{remote_address or 'unknown'}"


def rejection_response(admission: Admission) -> JSONResponse:
    """Short-circuit response for a request that must not reach its handler."""
    if admission.status is AdmissionStatus.REJECTED:
        return JSONResponse(
            status_code=429,
            content=api_error(
                code="RATE_LIMITED",
                message="too many requests, please try again later",
                detail={"limit": admission.limit, "remaining": 0},
            ),
            headers=admission.headers(),
        )
    return JSONResponse(
        status_code=503,
        content=api_error(
            code="SERVICE_UNAVAILABLE",
            message="service temporarily unavailable",
        ),
    )


async def enforce_admission(
    gate: AdmissionControlGate,
    request: Request,
    call_next: Callable,
) -> Response:
    """Run the gate for one request and forward or short-circuit it."""
    admission = gate.admit(
        method=request.method,
        path=request.url.path,
        remote_address=request.client.host if request.client else None,
        authorization=request.headers.get("Authorization"),
    )
    if not admission.proceed:
        return rejection_response(admission)

    try:
        response = await call_next(request)
    except Exception as exc:
        # The permit was consumed; the 500 still carries the limit headers.
        response = await handle_unexpected_exception(request, exc)
    response.headers.update(admission.headers())
    return response
