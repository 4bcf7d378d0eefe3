"""
Request budgets for the attacker-facing endpoints.

Counters live in the storage named by RATE_LIMIT_STORAGE_URI: ``memory://``
for a single process, ``redis://host:port`` when several instances share the
budget. The limits library increments atomically in both.
"""
import time

from limits import parse as parse_limit
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from shared.config import settings
from shared.errors import RateLimitError
from .jwt_handler import verify_access_token


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return get_remote_address(request)


def ip_key(request: Request) -> str:
    return f"ip:{client_ip(request)}"


def user_id_or_ip(request: Request) -> str:
    """
    Key function for SlowAPI.
    Extracts the user ID directly from the Authorization header if available.
    Falls back to the client's IP address if unauthenticated.
    """
    auth_header = request.headers.get("Authorization")

    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        payload = verify_access_token(token)
        if payload and "sub" in payload:
            return f"user:{payload['sub']}"

    return ip_key(request)


def webhook_limit() -> str:
    return settings.WEBHOOK_RATE_LIMIT


def verify_limit() -> str:
    return settings.VERIFY_RATE_LIMIT


def return_limit() -> str:
    return settings.RETURN_RATE_LIMIT


limiter = Limiter(
    key_func=user_id_or_ip,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="moving-window",
    headers_enabled=True,
    enabled=settings.RATE_LIMIT_ENABLED,
)


def enforce_limit(limit_provider, key_func=user_id_or_ip, scope: str | None = None):
    """
    Dependency version of ``limiter.limit``.

    Decorated routes are counted after FastAPI has resolved their other
    dependencies, so a request that fails an origin or identity check never
    spends budget. Listed first in ``dependencies=[...]``, this one counts
    every request before anything else about it is looked at.
    """

    async def _enforce(request: Request) -> None:
        if not limiter.enabled:
            return
        item = parse_limit(limit_provider())
        identifiers = (key_func(request), scope or request.url.path)
        if limiter.limiter.hit(item, *identifiers):
            return
        reset_time, remaining = limiter.limiter.get_window_stats(item, *identifiers)
        reset_in = 1 + int(reset_time)
        raise RateLimitError(
            f"Rate limit exceeded: {item}",
            operation="rate_limit",
            headers={
                "Retry-After": str(max(reset_in - int(time.time()), 0)),
                "X-RateLimit-Limit": str(item.amount),
                "X-RateLimit-Remaining": str(max(remaining, 0)),
                "X-RateLimit-Reset": str(reset_in),
            },
        )

    return _enforce
