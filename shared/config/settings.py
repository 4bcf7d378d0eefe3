import os
import warnings
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _secret(name: str, fallback: str) -> str:
    value = os.getenv(name, "")
    if not value:
        warnings.warn(
            f"{name} is not set. Using an insecure development default. "
            "Set this env var in production!",
            stacklevel=2,
        )
        value = fallback
    return value


ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_DEVELOPMENT = ENVIRONMENT == "development"

# --- Database ---
DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
DB_HOST = os.getenv("POSTGRES_HOST", "localhost")  # In Docker, this will be 'postgres'
DB_PORT = os.getenv("POSTGRES_PORT", "5433")
DB_NAME = os.getenv("POSTGRES_DB", "storefront")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)
SQL_ECHO = _flag("SQL_ECHO", "false")

# --- Identity ---
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")

# --- Payment gateway ---
GATEWAY_KEY_ID = _secret("GATEWAY_KEY_ID", "rzp_test_insecure_key")
GATEWAY_KEY_SECRET = _secret("GATEWAY_KEY_SECRET", "insecure-key-secret-change-me")
GATEWAY_WEBHOOK_SECRET = _secret("GATEWAY_WEBHOOK_SECRET", "insecure-webhook-secret-change-me")
GATEWAY_BASE_URL = os.getenv("GATEWAY_BASE_URL", "https://api.razorpay.com/v1")
GATEWAY_TIMEOUT_SECONDS = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "15"))
GATEWAY_CURRENCY = os.getenv("GATEWAY_CURRENCY", "INR")

# Tag written into gateway order notes; webhooks carrying another value are ignored
APP_ID = os.getenv("APP_ID", "storefront")

# --- Pricing ---
SHIPPING_FEE = Decimal(os.getenv("SHIPPING_FEE", "5"))

# --- Origin allow-list for the verification endpoint ---
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "")
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in [PUBLIC_BASE_URL, *os.getenv(
        "ALLOWED_ORIGINS", "http://localhost:3000,https://localhost:3000"
    ).split(",")]
    if origin.strip()
]

# --- Rate limiting ---
RATE_LIMIT_ENABLED = _flag("RATE_LIMIT_ENABLED", "true")
RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")
WEBHOOK_RATE_LIMIT = os.getenv("WEBHOOK_RATE_LIMIT", "100/15minutes")
VERIFY_RATE_LIMIT = os.getenv("VERIFY_RATE_LIMIT", "100/15minutes")
RETURN_RATE_LIMIT = os.getenv("RETURN_RATE_LIMIT", "5/day")

# --- Observability ---
SERVICE_NAME = os.getenv("SERVICE_NAME", "storefront_orders")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
TRACING_ENABLED = _flag("TRACING_ENABLED", "true")
OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT", "http://localhost:4317")
