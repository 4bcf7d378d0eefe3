"""
Tagged error types shared by every service.

Each error carries a stable external ``code`` and an HTTP ``status_code``.
The ``message`` is internal detail: it is logged, and only returned to the
caller for 4xx errors or when running in development.
"""
from typing import Optional


class AppError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        headers: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers or {}


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = 400


class AuthenticationError(AppError):
    code = "AUTHENTICATION_REQUIRED"
    status_code = 401


class AuthorizationError(AppError):
    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(AppError):
    code = "CONFLICT"
    status_code = 400


class SignatureError(AppError):
    """Signature mismatch. Webhooks answer 401, client verification 400."""

    code = "SIGNATURE_MISMATCH"
    status_code = 401


class RateLimitError(AppError):
    code = "RATE_LIMITED"
    status_code = 429


class UpstreamGatewayError(AppError):
    """The payment gateway call failed or timed out.

    Local state must never advance when this is raised.
    """

    code = "UPSTREAM_GATEWAY_ERROR"
    status_code = 500

    def __init__(self, message: str, *, retryable: bool = False, **kwargs):
        super().__init__(message, **kwargs)
        self.retryable = retryable
