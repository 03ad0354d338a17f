"""Liveness and store reachability routes."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import HTTPException

import taskmanager.runtime as runtime
from taskmanager.auth.http import api_error
from taskmanager.core.db import StoreUnavailableError
from taskmanager.core.db import ping_sqlite
from taskmanager.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/db-health")
def db_health() -> dict[str, str]:
    """Report whether the credential database can be opened and queried."""
    try:
        ping_sqlite(
            runtime.settings.tm_sqlite_path,
            timeout=runtime.settings.tm_sqlite_busy_timeout_seconds,
        )
    except StoreUnavailableError as exc:
        logger.warning("db_health_failed", error=str(exc))
        raise HTTPException(
            status_code=503,
            detail=api_error(code="SERVICE_UNAVAILABLE", message="service temporarily unavailable"),
        ) from exc
    return {"status": "ok"}
