"""
Cart engine

One cart per user, created on first access. Every mutation rebuilds the item
list, recomputes ``totalAmount`` from scratch and writes it back only if the
cart's ``version`` is unchanged since it was read; a lost race re-applies the
mutation on a fresh read.
"""

import logging
from typing import Callable, List

from bson import ObjectId
from pymongo import ReturnDocument

from ..database import parse_object_id, utcnow
from ..errors import Conflict, InvalidInput, NotFound
from ..settings_cache import SettingsCache
from . import catalog

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 5


def recalc_items(items: List[dict]) -> float:
    """Refresh every line's subtotal and return the cart total."""
    total = 0
    for item in items:
        item["subtotal"] = item["price"] * item["quantity"]
        total += item["subtotal"]
    return total


def _index_of(items: List[dict], product_id: ObjectId) -> int:
    for idx, item in enumerate(items):
        if str(item["product"]) == str(product_id):
            return idx
    return -1


class CartEngine:
    def __init__(self, db, settings: SettingsCache):
        self.db = db
        self.settings = settings
        self.carts = db["carts"]

    async def get_or_create(self, user_id) -> dict:
        user = parse_object_id(user_id, "userId")
        currency = await self.settings.get_currency(self.db)
        now = utcnow()
        cart = await self.carts.find_one_and_update(
            {"user": user},
            {
                "$setOnInsert": {
                    "items": [],
                    "totalAmount": 0,
                    "currency": currency,
                    "isActive": True,
                    "version": 0,
                    "createdAt": now,
                    "updatedAt": now,
                }
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        if cart.get("currency") != currency:
            cart = await self.carts.find_one_and_update(
                {"_id": cart["_id"]},
                {"$set": {"currency": currency}},
                return_document=ReturnDocument.AFTER,
            )
        return cart

    async def _mutate(self, user_id, mutate: Callable[[List[dict]], None]) -> dict:
        for _ in range(MAX_WRITE_ATTEMPTS):
            cart = await self.get_or_create(user_id)
            items = [dict(item) for item in cart.get("items", [])]
            mutate(items)
            total = recalc_items(items)
            now = utcnow()

            if "version" in cart:
                guard = {"_id": cart["_id"], "version": cart["version"]}
            else:
                guard = {"_id": cart["_id"], "version": {"$exists": False}}
            result = await self.carts.update_one(
                guard,
                {"$set": {"items": items, "totalAmount": total, "updatedAt": now}, "$inc": {"version": 1}},
            )
            if result.matched_count:
                cart.update(items=items, totalAmount=total, updatedAt=now, version=cart.get("version", 0) + 1)
                return cart
            logger.debug("Cart %s changed during update, retrying", cart["_id"])
        raise Conflict("Cart was modified concurrently, please retry")

    async def add(self, user_id, product_id, quantity: int = 1) -> dict:
        if quantity < 1:
            raise InvalidInput("Quantity must be >= 1")
        product = await catalog.find_active_by_id(self.db, product_id)
        if product is None:
            raise NotFound("Product not found or inactive")

        def apply(items):
            idx = _index_of(items, product["id"])
            if idx >= 0:
                items[idx]["quantity"] += quantity
            else:
                items.append(
                    {
                        "product": product["id"],
                        "name": product["name"],
                        "price": product["price"],
                        "quantity": quantity,
                        "subtotal": product["price"] * quantity,
                    }
                )

        return await self._mutate(user_id, apply)

    async def set_quantity(self, user_id, product_id, quantity: int) -> dict:
        if quantity < 0:
            raise InvalidInput("Quantity must be >= 0")
        pid = parse_object_id(product_id, "productId")

        def apply(items):
            idx = _index_of(items, pid)
            if idx < 0:
                raise NotFound("Item not found in cart")
            if quantity == 0:
                items.pop(idx)
            else:
                items[idx]["quantity"] = quantity

        return await self._mutate(user_id, apply)

    async def remove(self, user_id, product_id) -> dict:
        pid = parse_object_id(product_id, "productId")

        def apply(items):
            idx = _index_of(items, pid)
            if idx < 0:
                raise NotFound("Item not found in cart")
            items.pop(idx)

        return await self._mutate(user_id, apply)

    async def clear(self, user_id) -> dict:
        return await self._mutate(user_id, lambda items: items.clear())

    async def list_all(self) -> List[dict]:
        carts = await self.carts.find({}).sort("updatedAt", -1).to_list(length=None)
        user_ids = list({c["user"] for c in carts})
        users = await self.db["users"].find({"_id": {"$in": user_ids}}, {"name": 1, "email": 1, "role": 1}).to_list(length=None)
        by_id = {u["_id"]: u for u in users}
        for cart in carts:
            cart["user"] = by_id.get(cart["user"], {"_id": cart["user"]})
        return carts
