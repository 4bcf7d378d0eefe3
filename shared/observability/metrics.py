from prometheus_client import Counter, Histogram

# Business Metrics
ecomm_checkout_total = Counter(
    "ecomm_checkout_total",
    "Total checkouts processed",
    ["status", "payment_method"]  # status: 'success', 'failed'
)

ecomm_checkout_duration_seconds = Histogram(
    "ecomm_checkout_duration_seconds",
    "Checkout duration in seconds"
)

ecomm_saga_compensation_total = Counter(
    "ecomm_saga_compensation_total",
    "Total saga compensations triggered",
    ["step_name"]  # Labels: 'persist_sub_orders', ...
)

ecomm_webhook_events_total = Counter(
    "ecomm_webhook_events_total",
    "Gateway webhook deliveries by event type and outcome",
    ["event", "outcome"]  # outcome: 'applied', 'ignored', 'rejected'
)

ecomm_webhook_processing_seconds = Histogram(
    "ecomm_webhook_processing_seconds",
    "Webhook processing latency in seconds"
)

ecomm_payment_verification_total = Counter(
    "ecomm_payment_verification_total",
    "Client payment verifications by outcome",
    ["outcome"]  # 'verified', 'already_verified', 'rejected'
)

ecomm_refund_total = Counter(
    "ecomm_refund_total",
    "Refunds created by resulting status",
    ["status"]  # 'PROCESSED', 'PENDING'
)

ecomm_gateway_failures_total = Counter(
    "ecomm_gateway_failures_total",
    "Failed payment gateway calls",
    ["operation", "retryable"]
)
