"""HTTP API through the ASGI app."""

from decimal import Decimal

import pytest

from storefront.config import settings
from storefront.domain.models import Product

API_KEY = "gateway-key"
GATEWAY = {"X-API-Key": API_KEY}
USER = {**GATEWAY, "X-User-Id": "user-1"}
OTHER_USER = {**GATEWAY, "X-User-Id": "user-2"}
ADMIN = {**GATEWAY, "X-User-Id": "admin-1", "X-User-Role": "admin"}


def _order_body(*lines, **extra):
    body = {
        "items": [{"product_id": product_id, "quantity": quantity} for product_id, quantity in lines],
        "shipping_address": {
            "street": "221B Baker St",
            "city": "Mumbai",
            "state": "MH",
            "pin_code": "400001",
            "phone": "9876543210",
        },
    }
    body.update(extra)
    return body


@pytest.fixture(autouse=True)
def gateway_api_token(monkeypatch):
    monkeypatch.setattr(settings, "API_TOKEN", API_KEY)


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_create_order_returns_201_with_snapshot(client, seed, stock_of, lamp, mug):
    await seed(lamp, mug)

    response = await client.post(
        "/api/order",
        json=_order_body((lamp.id, 3), (mug.id, 7), payment_info={"id": "pay_1", "status": "succeeded", "type": "card"}),
        headers=USER,
    )

    assert response.status_code == 201
    order = response.json()
    assert order["user_id"] == "user-1"
    assert order["status"] == "pending"
    assert order["total_amount"] == "60.67"
    assert [item["line_total"] for item in order["items"]] == ["59.97", "0.70"]
    assert order["payment_info"]["id"] == "pay_1"
    assert order["paid_at"] is not None
    assert await stock_of(lamp.id) == 7


async def test_checkout_clears_cart(client, seed, lamp):
    await seed(lamp)
    await client.post(f"/api/cart/{lamp.id}", json={"quantity": 2}, headers=USER)

    response = await client.post("/api/order", json=_order_body((lamp.id, 2)), headers=USER)
    assert response.status_code == 201

    cart = (await client.get("/api/cart", headers=USER)).json()
    assert cart["items"] == []
    assert cart["total_quantity"] == 0


async def test_create_order_error_statuses(client, seed, stock_of, lamp):
    await seed(lamp)

    not_found = await client.post("/api/order", json=_order_body(("prod-ghost", 1)), headers=USER)
    short = await client.post("/api/order", json=_order_body((lamp.id, 11)), headers=USER)
    empty = await client.post("/api/order", json=_order_body(), headers=USER)
    zero = await client.post("/api/order", json=_order_body((lamp.id, 0)), headers=USER)

    assert not_found.status_code == 404
    assert short.status_code == 400
    assert "Insufficient stock" in short.json()["detail"]
    assert empty.status_code == 400
    assert zero.status_code == 400
    assert await stock_of(lamp.id) == 10


@pytest.mark.parametrize(
    "field, value",
    [("pin_code", "12345"), ("phone", "98765-4321"), ("street", "")],
)
async def test_malformed_address_is_400(client, seed, lamp, field, value):
    await seed(lamp)
    body = _order_body((lamp.id, 1))
    body["shipping_address"][field] = value

    response = await client.post("/api/order", json=body, headers=USER)

    assert response.status_code == 400


async def test_missing_identity_is_401(client):
    response = await client.get("/api/order/me", headers=GATEWAY)

    assert response.status_code == 401


async def test_api_key_is_required(client):
    missing = await client.get("/api/order/me", headers={"X-User-Id": "user-1"})
    wrong = await client.get("/api/order/me", headers={"X-User-Id": "user-1", "X-API-Key": "guess"})
    accepted = await client.get("/api/order/me", headers=USER)

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert accepted.status_code == 200


async def test_unconfigured_api_token_rejects_even_admin_headers(client, monkeypatch):
    monkeypatch.setattr(settings, "API_TOKEN", "")
    spoofed = {"X-User-Id": "mallory", "X-User-Role": "admin"}

    admin_list = await client.get("/api/admin/orders", headers=spoofed)
    admin_update = await client.put("/api/admin/order/any", json={"status": "fulfilled"}, headers=spoofed)
    own_orders = await client.get("/api/order/me", headers={"X-User-Id": "mallory"})

    assert admin_list.status_code == 401
    assert admin_update.status_code == 401
    assert own_orders.status_code == 401


async def test_idempotency_key_header_deduplicates(client, seed, stock_of, lamp):
    await seed(lamp)
    headers = {**USER, "Idempotency-Key": "retry-1"}

    first = await client.post("/api/order", json=_order_body((lamp.id, 2)), headers=headers)
    second = await client.post("/api/order", json=_order_body((lamp.id, 2)), headers=headers)

    assert first.json()["id"] == second.json()["id"]
    assert await stock_of(lamp.id) == 8


async def test_my_orders_and_single_order_visibility(client, seed, lamp):
    await seed(lamp)
    created = (await client.post("/api/order", json=_order_body((lamp.id, 1)), headers=USER)).json()

    mine = await client.get("/api/order/me", headers=USER)
    theirs = await client.get("/api/order/me", headers=OTHER_USER)
    as_owner = await client.get(f"/api/order/{created['id']}", headers=USER)
    as_other = await client.get(f"/api/order/{created['id']}", headers=OTHER_USER)
    as_admin = await client.get(f"/api/order/{created['id']}", headers=ADMIN)

    assert [o["id"] for o in mine.json()] == [created["id"]]
    assert theirs.json() == []
    assert as_owner.status_code == 200
    assert as_other.status_code == 404
    assert as_admin.status_code == 200


async def test_admin_orders_list_with_aggregate(client, seed, lamp, mug):
    await seed(lamp, mug)
    await client.post("/api/order", json=_order_body((lamp.id, 2)), headers=USER)
    await client.post("/api/order", json=_order_body((mug.id, 3)), headers=OTHER_USER)

    forbidden = await client.get("/api/admin/orders", headers=USER)
    response = await client.get("/api/admin/orders", headers=ADMIN)

    assert forbidden.status_code == 403
    assert response.status_code == 200
    assert response.json()["total_amount"] == "40.28"
    assert len(response.json()["orders"]) == 2


async def test_admin_fulfils_order_once(client, seed, lamp):
    await seed(lamp)
    created = (await client.post("/api/order", json=_order_body((lamp.id, 1)), headers=USER)).json()
    url = f"/api/admin/order/{created['id']}"

    first = await client.put(url, json={"status": "fulfilled"}, headers=ADMIN)
    second = await client.put(url, json={"status": "fulfilled"}, headers=ADMIN)
    not_admin = await client.put(url, json={"status": "fulfilled"}, headers=USER)
    unknown_status = await client.put(url, json={"status": "shipped"}, headers=ADMIN)
    missing = await client.put("/api/admin/order/missing", json={"status": "fulfilled"}, headers=ADMIN)

    assert first.status_code == 200
    assert first.json()["status"] == "fulfilled"
    assert second.status_code == 400
    assert not_admin.status_code == 403
    assert unknown_status.status_code == 400
    assert missing.status_code == 404

    order = (await client.get(f"/api/order/{created['id']}", headers=USER)).json()
    assert order["status"] == "fulfilled"


async def test_cart_endpoints(client, seed, lamp, mug):
    await seed(lamp, mug)

    added = await client.post(f"/api/cart/{lamp.id}", json={"quantity": 2}, headers=USER)
    default_quantity = await client.post(f"/api/cart/{mug.id}", headers=USER)
    updated = await client.put("/api/cart/update", json={"product_id": lamp.id, "quantity": 1}, headers=USER)
    removed = await client.delete(f"/api/cart/remove/{mug.id}", headers=USER)
    cleared = await client.delete("/api/cart/clear", headers=USER)

    assert added.json()["total"] == "39.98"
    assert default_quantity.json()["total_quantity"] == 3
    assert updated.json()["total"] == "20.09"
    assert removed.json()["total"] == "19.99"
    assert cleared.json()["items"] == []


async def test_cart_error_statuses(client, seed, lamp):
    await seed(lamp)

    too_many = await client.post(f"/api/cart/{lamp.id}", json={"quantity": 11}, headers=USER)
    unknown = await client.post("/api/cart/prod-ghost", json={"quantity": 1}, headers=USER)
    no_cart = await client.delete("/api/cart/clear", headers=USER)

    assert too_many.status_code == 400
    assert unknown.status_code == 404
    assert no_cart.status_code == 404


async def test_oversized_quantity_is_400_and_touches_no_stock(client, seed, stock_of):
    await seed(Product(id="prod-few", name="Few", price=Decimal("1.00"), stock=3))

    order = await client.post("/api/order", json=_order_body(("prod-few", 10**20)), headers=USER)
    int32_overflow = await client.post("/api/order", json=_order_body(("prod-few", 2**31)), headers=USER)
    cart_add = await client.post("/api/cart/prod-few", json={"quantity": 10**20}, headers=USER)
    cart_update = await client.put("/api/cart/update", json={"product_id": "prod-few", "quantity": 10**20}, headers=USER)

    assert order.status_code == 400
    assert int32_overflow.status_code == 400
    assert cart_add.status_code == 400
    assert cart_update.status_code == 400
    assert await stock_of("prod-few") == 3
