from .jwt_handler import create_access_token, verify_access_token
from .identity import CallerIdentity
from .dependencies import get_current_user
from .rate_limiter import enforce_limit, limiter, user_id_or_ip, ip_key, client_ip
from .signatures import (
    constant_time_equals,
    hmac_sha256_hex,
    verify_payment_signature,
    verify_webhook_signature,
)
from .csrf import set_csrf_token, verify_csrf_token, verify_origin

__all__ = [
    "create_access_token",
    "verify_access_token",
    "CallerIdentity",
    "get_current_user",
    "enforce_limit",
    "limiter",
    "user_id_or_ip",
    "ip_key",
    "client_ip",
    "constant_time_equals",
    "hmac_sha256_hex",
    "verify_payment_signature",
    "verify_webhook_signature",
    "set_csrf_token",
    "verify_csrf_token",
    "verify_origin",
]
