import hashlib
import hmac
import secrets


def hmac_sha256_hex(secret: str, message: bytes | str) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def constant_time_equals(provided: str | None, expected: str) -> bool:
    """Compare two tokens using constant-time comparison to prevent timing attacks."""
    if not provided:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def verify_webhook_signature(raw_body: bytes, provided: str | None, secret: str) -> bool:
    """The gateway signs the exact bytes it sent; never re-serialize before checking."""
    return constant_time_equals(provided, hmac_sha256_hex(secret, raw_body))


def verify_payment_signature(
    gateway_order_id: str, gateway_payment_id: str, provided: str | None, secret: str
) -> bool:
    expected = hmac_sha256_hex(secret, f"{gateway_order_id}|{gateway_payment_id}")
    return constant_time_equals(provided, expected)
