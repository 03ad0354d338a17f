"""Route -> rate limit policy table built at startup."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum


class RateLimitScope(str, Enum):
    """Which caller identity a rate limit counter is keyed by."""

    IP = "ip"
    USER = "user"


@dataclass(frozen=True, slots=True)
class RoutePolicy:
    scope: RateLimitScope = RateLimitScope.IP


RouteKey = tuple[str, str]
RoutePolicyTable = Mapping[RouteKey, RoutePolicy]


def route_key(method: str, path: str) -> RouteKey:
    return (method.upper(), path)


def build_route_policies() -> dict[RouteKey, RoutePolicy]:
    """Rate-limited routes; anything absent is never limited."""
    per_ip = RoutePolicy(scope=RateLimitScope.IP)
    per_user = RoutePolicy(scope=RateLimitScope.USER)
    return {
        route_key("POST", "/auth/register"): per_ip,
        route_key("POST", "/auth/login"): per_ip,
        route_key("POST", "/auth/refresh"): per_ip,
        route_key("POST", "/auth/logout"): per_ip,
        route_key("GET", "/me"): per_user,
    }
