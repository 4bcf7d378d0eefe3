from .exceptions import (
    AppError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    SignatureError,
    RateLimitError,
    UpstreamGatewayError,
)
from .handlers import register_exception_handlers

__all__ = [
    "AppError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "SignatureError",
    "RateLimitError",
    "UpstreamGatewayError",
    "register_exception_handlers",
]
