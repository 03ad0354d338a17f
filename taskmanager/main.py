"""FastAPI application entrypoint."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import taskmanager.runtime as runtime
from taskmanager.api.routers.auth import router as auth_router
from taskmanager.api.routers.health import router as health_router
from taskmanager.auth.http import handle_http_exception
from taskmanager.auth.http import handle_unexpected_exception
from taskmanager.auth.http import handle_validation_error
from taskmanager.logging import get_logger
from taskmanager.ratelimit.gate import enforce_admission

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    runtime.startup()
    yield


app = FastAPI(lifespan=lifespan)
app.include_router(health_router)
app.include_router(auth_router)


@app.middleware("http")
async def admission_control(request: Request, call_next):
    """Apply the route's rate limit before the handler runs, then log the request."""
    started = time.perf_counter()
    response = await enforce_admission(runtime.admission_gate, request, call_next)
    logger.info(
        "http_request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    return response


@app.exception_handler(HTTPException)
async def handle_http_exception_route(request: Request, exc: HTTPException) -> JSONResponse:
    """Adapter used by FastAPI exception handling."""
    return await handle_http_exception(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_error_route(request: Request, exc: RequestValidationError) -> JSONResponse:
    return await handle_validation_error(request, exc)


@app.exception_handler(Exception)
async def handle_unexpected_exception_route(request: Request, exc: Exception) -> JSONResponse:
    return await handle_unexpected_exception(request, exc)
