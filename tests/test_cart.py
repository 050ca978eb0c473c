"""Tests for the cart engine and the /api/cart routes."""

import asyncio

import pytest
from bson import ObjectId

from conftest import auth_headers, run
from storefront.errors import InvalidInput, NotFound
from storefront.services.cart import CartEngine, recalc_items


class TestRecalcItems:
    def test_total_is_sum_of_subtotals(self):
        items = [
            {"price": 10.0, "quantity": 2, "subtotal": 0},
            {"price": 5.0, "quantity": 1, "subtotal": 999},
        ]
        assert recalc_items(items) == 25.0
        assert [i["subtotal"] for i in items] == [20.0, 5.0]

    def test_empty(self):
        assert recalc_items([]) == 0


class TestCartEngine:
    def test_get_or_create_is_idempotent(self, db, settings, seed):
        user = seed.user()
        carts = CartEngine(db, settings)
        first = run(carts.get_or_create(user["_id"]))
        second = run(carts.get_or_create(user["_id"]))
        assert first["_id"] == second["_id"]
        assert first["items"] == []
        assert first["totalAmount"] == 0
        assert first["currency"] == "USD"

    def test_concurrent_first_access_creates_one_cart(self, db, settings, seed):
        user = seed.user()
        carts = CartEngine(db, settings)

        async def both():
            return await asyncio.gather(carts.get_or_create(user["_id"]), carts.get_or_create(user["_id"]))

        a, b = run(both())
        assert a["_id"] == b["_id"]
        assert run(db["carts"].count_documents({"user": user["_id"]})) == 1

    def test_add_accumulates_quantity(self, db, settings, seed):
        user = seed.user()
        product = seed.product(price=10.0)
        carts = CartEngine(db, settings)
        run(carts.add(user["_id"], str(product["_id"]), 1))
        cart = run(carts.add(user["_id"], str(product["_id"]), 2))
        assert len(cart["items"]) == 1
        assert cart["items"][0]["quantity"] == 3
        assert cart["totalAmount"] == 30.0

    def test_add_inactive_product(self, db, settings, seed):
        user = seed.user()
        product = seed.product(is_active=False)
        with pytest.raises(NotFound):
            run(CartEngine(db, settings).add(user["_id"], str(product["_id"]), 1))

    def test_add_rejects_non_positive_quantity(self, db, settings, seed):
        user = seed.user()
        product = seed.product()
        with pytest.raises(InvalidInput):
            run(CartEngine(db, settings).add(user["_id"], str(product["_id"]), 0))

    def test_set_quantity_zero_removes_line(self, db, settings, seed):
        user = seed.user()
        a = seed.product(price=10.0)
        b = seed.product(price=5.0)
        carts = CartEngine(db, settings)
        run(carts.add(user["_id"], str(a["_id"]), 2))
        run(carts.add(user["_id"], str(b["_id"]), 1))
        cart = run(carts.set_quantity(user["_id"], str(a["_id"]), 0))
        assert [str(i["product"]) for i in cart["items"]] == [str(b["_id"])]
        assert cart["totalAmount"] == 5.0

    def test_set_quantity_missing_item(self, db, settings, seed):
        user = seed.user()
        with pytest.raises(NotFound):
            run(CartEngine(db, settings).set_quantity(user["_id"], str(ObjectId()), 3))

    def test_remove_and_clear(self, db, settings, seed):
        user = seed.user()
        a = seed.product(price=10.0)
        b = seed.product(price=5.0)
        carts = CartEngine(db, settings)
        run(carts.add(user["_id"], str(a["_id"]), 1))
        run(carts.add(user["_id"], str(b["_id"]), 1))
        cart = run(carts.remove(user["_id"], str(a["_id"])))
        assert cart["totalAmount"] == 5.0
        cart = run(carts.clear(user["_id"]))
        assert cart["items"] == []
        assert cart["totalAmount"] == 0

    def test_concurrent_adds_are_not_lost(self, db, settings, seed):
        user = seed.user()
        product = seed.product(price=2.0)
        carts = CartEngine(db, settings)

        async def add_three():
            await asyncio.gather(*(carts.add(user["_id"], str(product["_id"]), 1) for _ in range(3)))

        run(add_three())
        cart = run(carts.get_or_create(user["_id"]))
        assert cart["items"][0]["quantity"] == 3
        assert cart["totalAmount"] == 6.0

    def test_currency_refreshed_on_read(self, db, settings, seed):
        user = seed.user()
        carts = CartEngine(db, settings)
        run(carts.get_or_create(user["_id"]))
        run(settings.set_currency(db, "EUR"))
        assert run(carts.get_or_create(user["_id"]))["currency"] == "EUR"


class TestCartRoutes:
    def test_requires_auth(self, client):
        response = client.get("/api/cart")
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_add_and_read(self, client, seed):
        user = seed.user()
        product = seed.product(price=7.5)
        headers = auth_headers(user)
        response = client.post(
            "/api/cart/add", json={"productId": str(product["_id"]), "quantity": 2}, headers=headers
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["totalAmount"] == 15.0
        assert data["items"][0]["product"] == str(product["_id"])

        response = client.get("/api/cart", headers=headers)
        assert response.json()["data"]["items"][0]["quantity"] == 2

    def test_add_invalid_product_id(self, client, seed):
        response = client.post("/api/cart/add", json={"productId": "nope"}, headers=auth_headers(seed.user()))
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation failed"
        assert body["errors"][0]["field"] == "productId"

    def test_patch_and_delete_item(self, client, seed):
        user = seed.user()
        product = seed.product(price=3.0)
        headers = auth_headers(user)
        client.post("/api/cart/add", json={"productId": str(product["_id"])}, headers=headers)

        response = client.patch(f"/api/cart/item/{product['_id']}", json={"quantity": 4}, headers=headers)
        assert response.json()["data"]["totalAmount"] == 12.0

        response = client.delete(f"/api/cart/item/{product['_id']}", headers=headers)
        assert response.json()["data"]["items"] == []

    def test_list_all_is_elevated_only(self, client, seed):
        user = seed.user()
        manager = seed.user(role="manager")
        client.get("/api/cart", headers=auth_headers(user))

        assert client.get("/api/cart/all", headers=auth_headers(user)).status_code == 403
        response = client.get("/api/cart/all", headers=auth_headers(manager))
        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert response.json()["data"][0]["user"]["email"] == user["email"]
