import pytest

from conftest import auth_headers


@pytest.mark.asyncio
async def test_empty_cart_starts_at_version_zero(client):
    resp = await client.get("/cart", headers=auth_headers())

    assert resp.json() == {"version": 0, "items": []}


@pytest.mark.asyncio
async def test_replace_bumps_version_and_merges_duplicates(client):
    resp = await client.put(
        "/cart",
        json={
            "version": 0,
            "items": [
                {"productId": "prod-a1", "quantity": 1},
                {"productId": "prod-b1", "quantity": 1},
                {"productId": "prod-a1", "quantity": 2},
            ],
        },
        headers=auth_headers(),
    )

    assert resp.status_code == 200
    assert resp.json()["version"] == 1
    assert resp.json()["items"] == [
        {"productId": "prod-a1", "quantity": 3},
        {"productId": "prod-b1", "quantity": 1},
    ]
    stored = await client.get("/cart", headers=auth_headers())
    assert stored.json()["version"] == 1
    assert len(stored.json()["items"]) == 2


@pytest.mark.asyncio
async def test_stale_version_is_a_conflict(client):
    await client.put("/cart", json={"version": 0, "items": []}, headers=auth_headers())

    stale = await client.put(
        "/cart", json={"version": 0, "items": [{"productId": "prod-a1", "quantity": 1}]}, headers=auth_headers()
    )

    assert stale.status_code == 400
    assert stale.json()["error"]["code"] == "CART_VERSION_CONFLICT"
    assert (await client.get("/cart", headers=auth_headers())).json()["items"] == []


@pytest.mark.asyncio
async def test_cart_is_private_to_its_owner(client):
    await client.put(
        "/cart", json={"version": 0, "items": [{"productId": "prod-a1", "quantity": 1}]}, headers=auth_headers()
    )

    other = await client.get("/cart", headers=auth_headers("user-2"))

    assert other.json()["items"] == []
