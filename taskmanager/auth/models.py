"""Pydantic models for auth requests."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field


class RegisterRequest(BaseModel):
    """POST /auth/register request body."""

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginRequest(BaseModel):
    """POST /auth/login request body."""

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    """POST /auth/refresh request body."""

    refresh_token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    """POST /auth/logout request body.

    An empty or absent token is accepted; logging it out is a no-op.
    """

    refresh_token: str = ""
