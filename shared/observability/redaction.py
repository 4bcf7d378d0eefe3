"""Masks secrets, signatures and payment instrument data before anything is logged."""
from typing import Any

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset({
    "signature",
    "razorpay_signature",
    "gateway_signature",
    "gatewaysignature",
    "x-razorpay-signature",
    "secret",
    "key_secret",
    "webhook_secret",
    "password",
    "token",
    "csrf_token",
    "authorization",
    "cookie",
    "card",
    "card_number",
    "cvv",
    "bank_account",
    "vpa",
})


def _is_sensitive(key: str) -> bool:
    normalized = key.lower()
    return normalized in SENSITIVE_KEYS or normalized.endswith(("_secret", "_signature"))


def mask(value: Any) -> Any:
    if isinstance(value, str):
        return value[:4] + "****" if value else value
    if value is None:
        return None
    return REDACTED


def sanitize(data: Any) -> Any:
    """Return a copy of ``data`` with every sensitive key masked, at any depth."""
    if isinstance(data, dict):
        return {
            key: mask(value) if isinstance(key, str) and _is_sensitive(key) else sanitize(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [sanitize(item) for item in data]
    return data


def redact_sensitive(logger, log_method, event_dict):
    """Structlog processor wrapper around ``sanitize``."""
    return sanitize(event_dict)
