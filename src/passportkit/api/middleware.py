"""Request guards: origin policy, rate limiting and cron authentication."""

from __future__ import annotations

import re
import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from passportkit.api.ratelimit import SlidingWindowRateLimiter
    from passportkit.config import Settings

_bearer_scheme = HTTPBearer(auto_error=False)


def _get_settings_from_request(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def is_allowed_origin(settings: Settings, origin: str | None) -> bool:
    if not origin:
        return False
    if origin in settings.allowed_origins:
        return True
    return bool(settings.allowed_origin_regex and re.fullmatch(settings.allowed_origin_regex, origin))


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None:
        return request.client.host
    return "unknown"


async def enforce_origin(request: Request) -> None:
    """In production, reject browser calls from origins not on the allow list."""
    settings = _get_settings_from_request(request)
    if settings.environment != "production":
        return
    if not is_allowed_origin(settings, request.headers.get("origin")):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def rate_limit(bucket: str) -> Callable[[Request], Awaitable[None]]:
    """Build a dependency that counts the caller against the named limiter."""

    async def _check(request: Request) -> None:
        limiter: SlidingWindowRateLimiter = request.app.state.rate_limiters[bucket]
        if limiter.hit(client_ip(request)):
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please wait a moment.",
            )

    return _check


async def verify_cron_secret(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> None:
    """Check the Bearer token against PASSPORTKIT_CRON_SECRET.

    Unlike the public endpoints this one is closed when no secret is set.
    """
    settings = _get_settings_from_request(request)
    if (
        settings.cron_secret is None
        or credentials is None
        or not secrets.compare_digest(credentials.credentials.encode(), settings.cron_secret.encode())
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
