"""Dependency helpers shared by API routers."""

from __future__ import annotations

from fastapi import Header

import taskmanager.runtime as runtime
from taskmanager.auth.errors import raise_token_invalid
from taskmanager.auth.http import parse_bearer_token
from taskmanager.core.clock import utc_now
from taskmanager.core.tokens import AccessTokenError
from taskmanager.core.tokens import subject_user_id
from taskmanager.logging import get_logger

logger = get_logger(__name__)


def require_current_user_id(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> int:
    """Read and verify the Bearer access token, returning its subject id."""
    token = parse_bearer_token(authorization)
    if token is None:
        raise_token_invalid()
    try:
        payload = runtime.token_signer.decode(token, now=utc_now())
        return subject_user_id(payload)
    except AccessTokenError as exc:
        logger.info("access_token_rejected", reason=str(exc))
        raise_token_invalid()
