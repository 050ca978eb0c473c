"""Tests for order cancellation, status changes and bulk operations."""

import pytest
from bson import ObjectId

from conftest import actor, auth_headers, run
from storefront.errors import Forbidden, InvalidInput, InvalidState, NotFound
from storefront.schemas import OrderItemIn
from storefront.services.lifecycle import ByCode, ById, OrderLifecycle, classify, ref_filter, unmatched
from storefront.services.orders import OrderMaterializer


def place_order(db, settings, seed, owner, price=10.0):
    address = seed.address(owner)
    product = seed.product(price=price)
    items = [OrderItemIn(productId=str(product["_id"]), quantity=1)]
    return run(OrderMaterializer(db, settings).create(actor(owner), str(address["_id"]), items=items))


class TestClassify:
    def test_object_id(self):
        oid = ObjectId()
        assert classify(str(oid)) == ById(str(oid), oid)

    def test_order_code(self):
        assert classify("ORD-1002") == ByCode("ORD-1002")

    def test_garbage_is_a_code(self):
        assert isinstance(classify("not-an-id"), ByCode)

    def test_ref_filter_mixed(self):
        oid = ObjectId()
        query = ref_filter([classify(str(oid)), classify("ORD-1")])
        assert query == {"$or": [{"_id": {"$in": [oid]}}, {"orderCode": {"$in": ["ORD-1"]}}]}

    def test_ref_filter_empty(self):
        with pytest.raises(InvalidInput):
            ref_filter([])

    def test_unmatched(self):
        oid = ObjectId()
        refs = [classify(str(oid)), classify("ORD-7"), classify("ORD-8")]
        assert unmatched(refs, [{"_id": oid, "orderCode": "ORD-9"}, {"_id": ObjectId(), "orderCode": "ORD-7"}]) == [
            "ORD-8"
        ]

    def test_unmatched_compares_ids_not_spelling(self):
        oid = ObjectId()
        refs = [classify(str(oid).upper())]
        assert unmatched(refs, [{"_id": oid, "orderCode": "ORD-1"}]) == []


class TestCancel:
    def test_cancel_flow(self, db, settings, seed):
        owner = seed.user()
        stranger = seed.user()
        order = place_order(db, settings, seed, owner)
        lifecycle = OrderLifecycle(db)

        with pytest.raises(Forbidden):
            run(lifecycle.cancel(actor(stranger), str(order["_id"])))

        cancelled = run(lifecycle.cancel(actor(owner), order["orderCode"]))
        assert cancelled["status"] == "cancelled"

        with pytest.raises(InvalidState):
            run(lifecycle.cancel(actor(owner), str(order["_id"])))

    def test_admin_is_not_the_owner(self, db, settings, seed):
        owner = seed.user()
        admin = seed.user(role="admin")
        order = place_order(db, settings, seed, owner)
        with pytest.raises(Forbidden):
            run(OrderLifecycle(db).cancel(actor(admin), str(order["_id"])))

    def test_unknown_order(self, db, seed):
        with pytest.raises(NotFound):
            run(OrderLifecycle(db).cancel(actor(seed.user()), "ORD-999999"))

    @pytest.mark.parametrize("status", ["paid", "shipped", "delivered", "refunded"])
    def test_only_pending_orders_cancel(self, db, settings, seed, status):
        owner = seed.user()
        order = place_order(db, settings, seed, owner)
        run(db["orders"].update_one({"_id": order["_id"]}, {"$set": {"status": status}}))

        with pytest.raises(InvalidState):
            run(OrderLifecycle(db).cancel(actor(owner), str(order["_id"])))
        assert run(db["orders"].find_one({"_id": order["_id"]}))["status"] == status

    def test_cancel_route(self, client, db, settings, seed):
        owner = seed.user()
        order = place_order(db, settings, seed, owner)
        response = client.post(f"/api/orders/{order['orderCode']}/cancel", headers=auth_headers(owner))
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"

        response = client.post(f"/api/orders/{order['orderCode']}/cancel", headers=auth_headers(owner))
        assert response.status_code == 400
        assert response.json()["error"] == "Only pending orders can be cancelled"


class TestStatusUpdates:
    def test_elevated_may_set_any_status(self, db, settings, seed):
        owner = seed.user()
        manager = seed.user(role="manager")
        order = place_order(db, settings, seed, owner)
        lifecycle = OrderLifecycle(db)
        assert run(lifecycle.update_status(actor(manager), str(order["_id"]), "delivered"))["status"] == "delivered"
        assert run(lifecycle.update_status(actor(manager), order["orderCode"], "pending"))["status"] == "pending"

    def test_owner_may_not_set_status(self, db, settings, seed):
        owner = seed.user()
        order = place_order(db, settings, seed, owner)
        with pytest.raises(Forbidden):
            run(OrderLifecycle(db).update_status(actor(owner), str(order["_id"]), "paid"))

    def test_bulk_update_reports_unmatched(self, db, settings, seed):
        owner = seed.user()
        admin = seed.user(role="admin")
        first = place_order(db, settings, seed, owner)
        second = place_order(db, settings, seed, owner)
        assert second["orderCode"] == "ORD-1002"

        result = run(OrderLifecycle(db).bulk_update_status(actor(admin), ["ORD-1002", "<bad-id>"], "shipped"))
        assert result["matchedCount"] == 1
        assert result["modifiedCount"] == 1
        assert result["notFound"] == ["<bad-id>"]
        assert run(db["orders"].find_one({"_id": second["_id"]}))["status"] == "shipped"
        assert run(db["orders"].find_one({"_id": first["_id"]}))["status"] == "pending"

    def test_bulk_matches_upper_case_id(self, db, settings, seed):
        owner = seed.user()
        admin = seed.user(role="admin")
        order = place_order(db, settings, seed, owner)

        result = run(OrderLifecycle(db).bulk_update_status(actor(admin), [str(order["_id"]).upper()], "paid"))
        assert result["matchedCount"] == 1
        assert result["notFound"] == []

    def test_bulk_with_no_match(self, db, seed):
        with pytest.raises(NotFound):
            run(OrderLifecycle(db).bulk_update_status(actor(seed.user(role="admin")), ["ORD-1"], "paid"))

    def test_bulk_route(self, client, db, settings, seed):
        owner = seed.user()
        admin = seed.user(role="admin")
        order = place_order(db, settings, seed, owner)
        response = client.patch(
            "/api/orders/status/bulk",
            json={"orderIds": [str(order["_id"]), str(ObjectId())], "status": "paid"},
            headers=auth_headers(admin),
        )
        body = response.json()
        assert response.status_code == 200
        assert body["matchedCount"] == 1
        assert len(body["notFound"]) == 1
        assert body["data"][0]["status"] == "paid"

        response = client.patch(
            "/api/orders/status/bulk",
            json={"orderIds": [str(order["_id"])], "status": "lost"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 400


class TestBulkDelete:
    def test_soft_delete_hides_orders(self, client, db, settings, seed):
        owner = seed.user()
        admin = seed.user(role="admin")
        order = place_order(db, settings, seed, owner)

        response = client.request(
            "DELETE", "/api/orders/bulk", json={"orderIds": [order["orderCode"]]}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["modifiedCount"] == 1

        assert client.get(f"/api/orders/{order['orderCode']}", headers=auth_headers(owner)).status_code == 404
        response = client.get(
            f"/api/orders/{order['orderCode']}?includeInactive=true", headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["data"]["isActive"] is False

    def test_owner_cannot_bulk_delete(self, client, db, settings, seed):
        owner = seed.user()
        order = place_order(db, settings, seed, owner)
        response = client.request(
            "DELETE", "/api/orders/bulk", json={"orderIds": [order["orderCode"]]}, headers=auth_headers(owner)
        )
        assert response.status_code == 403
