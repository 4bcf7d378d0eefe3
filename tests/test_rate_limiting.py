import json

import pytest
from starlette.requests import Request

from conftest import ORIGIN, auth_headers, sign_body
from shared.config import settings
from shared.security.rate_limiter import client_ip


def _request(headers: dict) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return Request({"type": "http", "headers": raw, "client": ("10.0.0.9", 1234)})


def test_client_ip_prefers_first_forwarded_hop():
    assert client_ip(_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})) == "203.0.113.7"
    assert client_ip(_request({"X-Real-IP": "198.51.100.4"})) == "198.51.100.4"
    assert client_ip(_request({})) == "10.0.0.9"


@pytest.mark.asyncio
async def test_webhook_budget_exhaustion_returns_429_with_retry_metadata(client, monkeypatch):
    monkeypatch.setattr(settings, "WEBHOOK_RATE_LIMIT", "2/minute")
    body = json.dumps({"event": "order.paid", "payload": {}}).encode()
    headers = {"X-Razorpay-Signature": sign_body(body), "X-Forwarded-For": "203.0.113.7"}

    responses = [await client.post("/payments/webhook", content=body, headers=headers) for _ in range(3)]

    assert [r.status_code for r in responses] == [200, 200, 429]
    limited = responses[-1]
    assert limited.json()["error"]["code"] == "RATE_LIMITED"
    assert "Retry-After" in limited.headers
    assert limited.headers["X-RateLimit-Remaining"] == "0"
    assert "X-RateLimit-Reset" in limited.headers


@pytest.mark.asyncio
async def test_webhook_budget_is_per_client_address(client, monkeypatch):
    monkeypatch.setattr(settings, "WEBHOOK_RATE_LIMIT", "1/minute")
    body = json.dumps({"event": "order.paid", "payload": {}}).encode()
    signature = sign_body(body)

    first = await client.post(
        "/payments/webhook", content=body, headers={"X-Razorpay-Signature": signature, "X-Forwarded-For": "203.0.113.7"}
    )
    other = await client.post(
        "/payments/webhook", content=body, headers={"X-Razorpay-Signature": signature, "X-Forwarded-For": "203.0.113.8"}
    )

    assert first.status_code == other.status_code == 200


@pytest.mark.asyncio
async def test_unsigned_requests_still_spend_budget(client, monkeypatch):
    monkeypatch.setattr(settings, "WEBHOOK_RATE_LIMIT", "1/minute")
    body = b'{"event": "order.paid", "payload": {}}'

    forged = await client.post("/payments/webhook", content=body, headers={"X-Razorpay-Signature": "bad"})
    signed = await client.post("/payments/webhook", content=body, headers={"X-Razorpay-Signature": sign_body(body)})

    assert forged.status_code == 401
    assert signed.status_code == 429


@pytest.mark.asyncio
async def test_verification_is_limited_per_user(client, monkeypatch):
    monkeypatch.setattr(settings, "VERIFY_RATE_LIMIT", "1/minute")
    payload = {"gatewayOrderId": "order_X1", "gatewayPaymentId": "pay_X1", "gatewaySignature": "f" * 64}
    headers = {**auth_headers(), "Origin": ORIGIN}

    first = await client.post("/payments/verify", json=payload, headers=headers)
    second = await client.post("/payments/verify", json=payload, headers=headers)

    assert first.status_code == 400
    assert second.status_code == 429


@pytest.mark.asyncio
async def test_verification_budget_is_spent_before_origin_check(client, monkeypatch):
    monkeypatch.setattr(settings, "VERIFY_RATE_LIMIT", "2/minute")
    payload = {"gatewayOrderId": "order_X1", "gatewayPaymentId": "pay_X1", "gatewaySignature": "f" * 64}
    headers = {**auth_headers(), "Origin": "https://evil.example.net"}

    responses = [await client.post("/payments/verify", json=payload, headers=headers) for _ in range(3)]

    assert [r.status_code for r in responses] == [403, 403, 429]
    limited = responses[-1]
    assert limited.json()["error"]["code"] == "RATE_LIMITED"
    assert limited.json()["error"]["operation"] == "rate_limit"
    assert "Retry-After" in limited.headers
    assert limited.headers["X-RateLimit-Limit"] == "2"
    assert limited.headers["X-RateLimit-Remaining"] == "0"


@pytest.mark.asyncio
async def test_verification_budget_is_spent_without_a_token(client, monkeypatch):
    monkeypatch.setattr(settings, "VERIFY_RATE_LIMIT", "1/minute")
    payload = {"gatewayOrderId": "order_X1", "gatewayPaymentId": "pay_X1", "gatewaySignature": "f" * 64}
    headers = {"Origin": ORIGIN, "X-Forwarded-For": "203.0.113.9"}

    first = await client.post("/payments/verify", json=payload, headers=headers)
    second = await client.post("/payments/verify", json=payload, headers=headers)

    assert first.status_code == 401
    assert second.status_code == 429
