"""
Shared fixtures: an in-memory SQLite database per test, the FastAPI app wired
to it, and a mocked payment gateway.
"""
import hashlib
import hmac
import json
import os
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

# Must be set before any application module is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["GATEWAY_KEY_ID"] = "rzp_test_key"
os.environ["GATEWAY_KEY_SECRET"] = "test-key-secret"
os.environ["GATEWAY_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["TRACING_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "development"
os.environ["ALLOWED_ORIGINS"] = "https://shop.example.com"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from main import app
from shared.config import settings
from shared.config.database import Base, get_db
from shared.security import create_access_token, limiter
from services.cart_service.models import Cart, CartItem
from services.catalog_service.models import Product, Vendor
from services.order_service.models import Order, OrderItem, OrderStatus, PaymentMethod
from services.payment_service.gateway import GatewayClient, get_gateway_client

ORIGIN = "https://shop.example.com"
GATEWAY_ORDER_ID = "order_Gw123"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def gateway():
    """Gateway double: opens order_Gw123 and refunds as rfnd_Test1."""
    client = MagicMock(spec=GatewayClient)
    client.key_id = settings.GATEWAY_KEY_ID
    client.create_order = AsyncMock(
        side_effect=lambda amount_minor, currency, receipt, notes: {
            "id": GATEWAY_ORDER_ID,
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
            "status": "created",
        }
    )
    client.refund_payment = AsyncMock(return_value={"id": "rfnd_Test1", "status": "processed"})
    return client


@pytest_asyncio.fixture
async def client(session_factory, gateway):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway_client] = lambda: gateway
    limiter.reset()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def catalog(session_factory):
    """Two vendors; vendor-a sells a lamp and a shade, vendor-b a rug."""
    async with session_factory() as session:
        session.add_all([
            Vendor(id="vendor-a", owner_user_id="owner-a", name="Lamp House"),
            Vendor(id="vendor-b", owner_user_id="owner-b", name="Rug Co"),
        ])
        await session.flush()
        session.add_all([
            Product(id="prod-a1", vendor_id="vendor-a", name="Lamp", price=Decimal("100.00")),
            Product(id="prod-a2", vendor_id="vendor-a", name="Shade", price=Decimal("20.00")),
            Product(id="prod-b1", vendor_id="vendor-b", name="Rug", price=Decimal("50.00")),
        ])
        await session.commit()


@pytest.fixture
def make_order(session_factory, catalog):
    async def _make(
        order_id: str,
        *,
        user_id: str = "user-1",
        vendor_id: str = "vendor-a",
        total: str = "100.00",
        payment_method: PaymentMethod = PaymentMethod.RAZORPAY,
        is_paid: bool = False,
        status: OrderStatus = OrderStatus.ORDER_PLACED,
        gateway_order_id: str | None = GATEWAY_ORDER_ID,
        gateway_payment_id: str | None = None,
        delivered_at=None,
        items=(("prod-a1", 1, "100.00"),),
    ) -> str:
        async with session_factory() as session:
            session.add(Order(
                id=order_id,
                user_id=user_id,
                vendor_id=vendor_id,
                address_id="addr-1",
                total=Decimal(total),
                payment_method=payment_method,
                is_paid=is_paid,
                status=status,
                gateway_order_id=gateway_order_id,
                gateway_payment_id=gateway_payment_id,
                delivered_at=delivered_at,
                items=[
                    OrderItem(product_id=pid, quantity=qty, price=Decimal(price))
                    for pid, qty, price in items
                ],
            ))
            await session.commit()
        return order_id

    return _make


@pytest_asyncio.fixture
async def filled_cart(session_factory):
    async with session_factory() as session:
        session.add(Cart(
            user_id="user-1",
            version=3,
            items=[CartItem(product_id="prod-a1", quantity=1), CartItem(product_id="prod-b1", quantity=2)],
        ))
        await session.commit()


# --- helpers ---

def auth_headers(user_id: str = "user-1", **claims) -> dict:
    token = create_access_token({"sub": user_id, **claims})
    return {"Authorization": f"Bearer {token}"}


def csrf_headers(token: str = "a" * 64) -> dict:
    return {"X-CSRF-Token": token, "Cookie": f"csrf-token={token}"}


def sign_body(body: bytes, secret: str | None = None) -> str:
    secret = secret or settings.GATEWAY_WEBHOOK_SECRET
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def payment_signature(order_id: str, payment_id: str) -> str:
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(settings.GATEWAY_KEY_SECRET.encode(), message, hashlib.sha256).hexdigest()


def webhook_body(
    event: str,
    order_ids: list[str],
    *,
    gateway_order_id: str = GATEWAY_ORDER_ID,
    payment_id: str = "pay_Test1",
    app_id: str | None = None,
    currency: str = "INR",
) -> bytes:
    app_id = settings.APP_ID if app_id is None else app_id
    return json.dumps({
        "entity": "event",
        "event": event,
        "id": "evt_Test1",
        "payload": {
            "payment": {
                "entity": {
                    "id": payment_id,
                    "order_id": gateway_order_id,
                    "amount": 10000,
                    "currency": currency,
                    "status": "captured" if event == "payment.captured" else "failed",
                    "signature": "sig_from_gateway",
                }
            },
            "order": {
                "entity": {
                    "id": gateway_order_id,
                    "amount": 10000,
                    "currency": currency,
                    "status": "paid",
                    "notes": {"orderIds": ",".join(order_ids), "userId": "user-1", "appId": app_id},
                }
            },
        },
    }).encode()
