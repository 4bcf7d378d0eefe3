from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import GATEWAY_ORDER_ID, auth_headers, csrf_headers
from shared.errors import UpstreamGatewayError
from services.cart_service.models import Cart
from services.order_service.models import Coupon, Order


def _checkout(payment_method="RAZORPAY", coupon=None, items=None):
    body = {
        "addressId": "addr-1",
        "items": items or [{"id": "prod-a1", "quantity": 1}, {"id": "prod-b1", "quantity": 2}],
        "paymentMethod": payment_method,
    }
    if coupon:
        body["couponCode"] = coupon
    return body


async def _orders(session_factory) -> list[Order]:
    async with session_factory() as session:
        result = await session.execute(select(Order).order_by(Order.vendor_id))
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_gateway_checkout_opens_one_remote_order_for_all_vendors(client, catalog, gateway, session_factory):
    resp = await client.post(
        "/orders", json=_checkout(), headers={**auth_headers(), **csrf_headers()}
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["order"]["id"] == GATEWAY_ORDER_ID
    assert body["key"] == "rzp_test_key"
    assert len(body["orderIds"]) == 2
    # CSRF token is rotated on success
    assert resp.cookies.get("csrf-token") not in (None, "a" * 64)

    kwargs = gateway.create_order.await_args.kwargs
    assert kwargs["amount_minor"] == 20500
    assert kwargs["currency"] == "INR"
    assert len(kwargs["receipt"]) <= 40
    assert kwargs["notes"]["appId"] == "storefront"
    assert kwargs["notes"]["userId"] == "user-1"
    assert set(kwargs["notes"]["orderIds"].split(",")) == set(body["orderIds"])

    orders = await _orders(session_factory)
    assert [o.total for o in orders] == [Decimal("105.00"), Decimal("100.00")]
    assert all(o.gateway_order_id == GATEWAY_ORDER_ID for o in orders)
    assert not any(o.is_paid for o in orders)


@pytest.mark.asyncio
async def test_cod_checkout_finalises_immediately(client, catalog, filled_cart, gateway, session_factory):
    resp = await client.post(
        "/orders", json=_checkout("COD"), headers={**auth_headers(), **csrf_headers()}
    )

    assert resp.status_code == 200
    assert resp.json()["message"] == "Orders Placed Successfully"
    gateway.create_order.assert_not_awaited()

    async with session_factory() as session:
        cart = await session.get(Cart, "user-1")
        assert cart.items == []
    assert len(await _orders(session_factory)) == 2


@pytest.mark.asyncio
async def test_members_are_not_charged_shipping(client, catalog, gateway):
    resp = await client.post(
        "/orders", json=_checkout(), headers={**auth_headers(plan="plus"), **csrf_headers()}
    )

    assert resp.status_code == 200
    assert gateway.create_order.await_args.kwargs["amount_minor"] == 20000


@pytest.mark.asyncio
async def test_gateway_failure_compensates_the_sub_orders(client, catalog, gateway, session_factory):
    gateway.create_order.side_effect = UpstreamGatewayError(
        "Gateway request timed out", retryable=True, operation="create_order"
    )

    resp = await client.post(
        "/orders", json=_checkout(), headers={**auth_headers(), **csrf_headers()}
    )

    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "UPSTREAM_GATEWAY_ERROR"
    assert await _orders(session_factory) == []


@pytest.mark.asyncio
async def test_checkout_requires_matching_csrf_token(client, catalog):
    headers = {**auth_headers(), "X-CSRF-Token": "a" * 64, "Cookie": "csrf-token=" + "b" * 64}

    resp = await client.post("/orders", json=_checkout(), headers=headers)

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "INVALID_CSRF_TOKEN"


@pytest.mark.asyncio
async def test_checkout_requires_identity(client, catalog):
    resp = await client.post("/orders", json=_checkout(), headers=csrf_headers())

    assert resp.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "items",
    [
        [],
        [{"id": "prod-a1", "quantity": 0}],
        [{"id": "prod-a1", "quantity": -2}],
    ],
)
async def test_malformed_items_are_rejected_before_any_write(client, catalog, session_factory, items):
    body = {"addressId": "addr-1", "items": items, "paymentMethod": "COD"}

    resp = await client.post("/orders", json=body, headers={**auth_headers(), **csrf_headers()})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
    assert await _orders(session_factory) == []


@pytest.mark.asyncio
async def test_unknown_product_is_not_found(client, catalog, session_factory):
    resp = await client.post(
        "/orders",
        json=_checkout(items=[{"id": "prod-zz", "quantity": 1}]),
        headers={**auth_headers(), **csrf_headers()},
    )

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "PRODUCT_NOT_FOUND"
    assert await _orders(session_factory) == []


@pytest.mark.asyncio
async def test_coupon_rules(client, catalog, session_factory, make_order, gateway):
    async with session_factory() as session:
        session.add_all([
            Coupon(code="PLUS10", discount=Decimal("10"), for_member=True),
            Coupon(code="WELCOME", discount=Decimal("20"), for_new_user=True),
            Coupon(
                code="OLD",
                discount=Decimal("5"),
                expires_at=datetime.now(timezone.utc) - timedelta(days=1),
            ),
        ])
        await session.commit()
    headers = {**auth_headers(), **csrf_headers()}

    unknown = await client.post("/orders", json=_checkout(coupon="NOPE"), headers=headers)
    members_only = await client.post("/orders", json=_checkout(coupon="PLUS10"), headers=headers)
    expired = await client.post("/orders", json=_checkout(coupon="OLD"), headers=headers)

    assert unknown.status_code == 404
    assert members_only.status_code == 400
    assert members_only.json()["error"]["code"] == "COUPON_MEMBERS_ONLY"
    assert expired.json()["error"]["code"] == "COUPON_EXPIRED"

    member = await client.post(
        "/orders", json=_checkout(coupon="PLUS10"), headers={**auth_headers(plan="plus"), **csrf_headers()}
    )
    assert member.status_code == 200
    # (100 + 100) * 0.9, no shipping for members
    assert gateway.create_order.await_args.kwargs["amount_minor"] == 18000

    await make_order("ord-old", user_id="user-2")
    repeat = await client.post(
        "/orders", json=_checkout(coupon="WELCOME"), headers={**auth_headers("user-2"), **csrf_headers()}
    )
    assert repeat.json()["error"]["code"] == "COUPON_NEW_USERS_ONLY"


@pytest.mark.asyncio
async def test_coupon_is_recorded_on_every_sub_order(client, catalog, session_factory):
    async with session_factory() as session:
        session.add(Coupon(code="ALL5", discount=Decimal("5")))
        await session.commit()

    resp = await client.post(
        "/orders", json=_checkout("COD", coupon="ALL5"), headers={**auth_headers(), **csrf_headers()}
    )

    assert resp.status_code == 200
    async with session_factory() as session:
        used = await session.scalar(
            select(func.count(Order.id)).where(Order.is_coupon_used.is_(True), Order.coupon_code == "ALL5")
        )
    assert used == 2
