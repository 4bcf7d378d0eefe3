from .setup import setup_observability
from .redaction import sanitize
from .metrics import (
    ecomm_checkout_total,
    ecomm_checkout_duration_seconds,
    ecomm_saga_compensation_total,
    ecomm_webhook_events_total,
    ecomm_webhook_processing_seconds,
    ecomm_payment_verification_total,
    ecomm_refund_total,
    ecomm_gateway_failures_total,
)
