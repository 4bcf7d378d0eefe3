import pytest

from conftest import auth_headers
from shared.errors import AppError, UpstreamGatewayError
from shared.errors.handlers import GENERIC_MESSAGE, error_body
from shared.config import settings


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_csrf_endpoint_sets_cookie_and_returns_token(client):
    resp = await client.get("/csrf")

    token = resp.json()["csrfToken"]
    assert len(token) == 64
    assert resp.cookies.get("csrf-token") == token


@pytest.mark.asyncio
async def test_error_shape(client):
    resp = await client.get("/orders")

    assert resp.status_code == 401
    error = resp.json()["error"]
    assert resp.json()["success"] is False
    assert error["code"] == "AUTHENTICATION_REQUIRED"
    assert error["operation"] == "authentication"
    assert "timestamp" in error


@pytest.mark.asyncio
async def test_expired_or_tampered_token_is_401(client):
    token = auth_headers()["Authorization"] + "x"

    resp = await client.get("/orders", headers={"Authorization": token})

    assert resp.status_code == 401


def test_server_errors_hide_detail_outside_development(monkeypatch):
    monkeypatch.setattr(settings, "IS_DEVELOPMENT", False)

    upstream = error_body(UpstreamGatewayError("Gateway answered 502: <html>secret</html>", operation="refund"))
    client_side = error_body(AppError("bad input", status_code=400, code="VALIDATION_ERROR"))

    assert upstream["error"]["message"] == GENERIC_MESSAGE
    assert upstream["error"]["code"] == "UPSTREAM_GATEWAY_ERROR"
    assert client_side["error"]["message"] == "bad input"
