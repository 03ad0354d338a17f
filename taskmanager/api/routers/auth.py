"""Auth REST routes."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Response

import taskmanager.runtime as runtime
from taskmanager.api.deps import require_current_user_id
from taskmanager.auth.errors import raise_for_failure
from taskmanager.auth.models import LoginRequest
from taskmanager.auth.models import LogoutRequest
from taskmanager.auth.models import RefreshRequest
from taskmanager.auth.models import RegisterRequest
from taskmanager.auth.outcomes import AuthFailure
from taskmanager.auth.outcomes import SessionOutcome
from taskmanager.core.clock import to_utc_iso

router = APIRouter()


def _session_payload(outcome: SessionOutcome) -> dict[str, object]:
    if isinstance(outcome, AuthFailure):
        raise_for_failure(outcome)
    return outcome.as_payload()


@router.post("/auth/register")
def register(payload: RegisterRequest) -> dict[str, object]:
    """Create a user and return its first token pair."""
    return _session_payload(runtime.auth_manager.register(payload.email, payload.password))


@router.post("/auth/login")
def login(payload: LoginRequest) -> dict[str, object]:
    """Authenticate and issue a fresh token pair."""
    return _session_payload(runtime.auth_manager.login(payload.email, payload.password))


@router.post("/auth/refresh")
def refresh(payload: RefreshRequest) -> dict[str, object]:
    """Rotate the refresh token and issue a new access/refresh pair."""
    return _session_payload(runtime.auth_manager.refresh(payload.refresh_token))


@router.post("/auth/logout", status_code=204)
def logout(payload: LogoutRequest) -> Response:
    """Revoke the provided refresh token idempotently."""
    failure = runtime.auth_manager.logout(payload.refresh_token)
    if failure is not None:
        raise_for_failure(failure)
    return Response(status_code=204)


@router.get("/me")
def me(user_id: int = Depends(require_current_user_id)) -> dict[str, object]:
    """Profile of the user identified by the Bearer access token."""
    outcome = runtime.auth_manager.get_current_user(user_id)
    if isinstance(outcome, AuthFailure):
        raise_for_failure(outcome)
    return {"id": outcome.id, "email": outcome.email, "created_at": to_utc_iso(outcome.created_at)}
