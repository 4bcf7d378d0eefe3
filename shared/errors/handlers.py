from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from shared.config import settings
from .exceptions import AppError, RateLimitError

logger = structlog.get_logger(__name__)

GENERIC_MESSAGE = "An error occurred while processing the request"


def error_body(exc: AppError) -> dict:
    expose = exc.status_code < 500 or settings.IS_DEVELOPMENT
    return {
        "success": False,
        "error": {
            "message": exc.message if expose else GENERIC_MESSAGE,
            "code": exc.code,
            "operation": exc.operation,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_failed",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code,
        operation=exc.operation,
        detail=exc.message,
    )
    return JSONResponse(error_body(exc), status_code=exc.status_code, headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = [
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    error = AppError(
        "; ".join(problems) or "Invalid request",
        code="VALIDATION_ERROR",
        status_code=400,
        operation="input_validation",
    )
    logger.warning("request_invalid", path=request.url.path, errors=problems)
    return JSONResponse(error_body(error), status_code=400)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Same job as slowapi's default handler, in the shared error shape."""
    error = RateLimitError(f"Rate limit exceeded: {exc.detail}", operation="rate_limit")
    response = JSONResponse(error_body(error), status_code=429)
    view_rate_limit = getattr(request.state, "view_rate_limit", None)
    if view_rate_limit is not None:
        response = request.app.state.limiter._inject_headers(response, view_rate_limit)
    logger.warning(
        "rate_limit_exceeded",
        path=request.url.path,
        retry_after=response.headers.get("Retry-After"),
    )
    return response


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_crashed", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse(error_body(AppError(str(exc))), status_code=500)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
