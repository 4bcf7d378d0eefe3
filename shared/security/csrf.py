"""Double-submit CSRF tokens and the origin allow-list."""
import secrets
from urllib.parse import urlsplit

from fastapi import Request, Response

from shared.config import settings
from shared.errors import AuthorizationError
from .signatures import constant_time_equals

CSRF_TOKEN_BYTES = 32
CSRF_COOKIE_NAME = "csrf-token"
CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_COOKIE_MAX_AGE = 60 * 60 * 24 * 7


def generate_csrf_token() -> str:
    return secrets.token_hex(CSRF_TOKEN_BYTES)


def set_csrf_token(response: Response) -> str:
    """Rotate the token: a fresh value goes out with every successful mutation."""
    token = generate_csrf_token()
    response.set_cookie(
        CSRF_COOKIE_NAME,
        token,
        max_age=CSRF_COOKIE_MAX_AGE,
        path="/",
        httponly=False,  # the client echoes it back in the header
        secure=not settings.IS_DEVELOPMENT,
        samesite="strict",
    )
    return token


async def verify_csrf_token(request: Request) -> None:
    """Dependency: cookie and header token must match."""
    cookie_token = request.cookies.get(CSRF_COOKIE_NAME)
    header_token = request.headers.get(CSRF_HEADER_NAME)
    if not cookie_token or not constant_time_equals(header_token, cookie_token):
        raise AuthorizationError("Invalid CSRF token", operation="csrf_protection", code="INVALID_CSRF_TOKEN")


def origin_of(url: str) -> str:
    """``scheme://host[:port]`` of a URL, lower-cased; empty when it has neither."""
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


def is_allowed_origin(origin: str | None, referer: str | None, allowed: list[str]) -> bool:
    candidate = origin_of(origin or referer or "")
    if not candidate:
        return False
    return any(candidate == origin_of(entry) for entry in allowed)


async def verify_origin(request: Request) -> None:
    """Dependency: reject requests whose Origin (or Referer) is not allow-listed."""
    origin = request.headers.get("origin")
    referer = request.headers.get("referer")
    if not is_allowed_origin(origin, referer, settings.ALLOWED_ORIGINS):
        raise AuthorizationError(
            "Invalid request origin", operation="csrf_protection", code="INVALID_ORIGIN"
        )
