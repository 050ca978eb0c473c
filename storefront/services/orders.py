"""
Order materializer and order read paths.

An order is a frozen snapshot: item names and prices are copied from the
catalog at commit time, the shipping address is copied from the address book
(or taken inline for guests) and the currency comes from the shop settings.
Resolution is all-or-nothing; nothing is written until every item resolves.
"""

import logging
import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from pymongo.errors import PyMongoError

from ..database import create_document, find_page, parse_object_id, sort_spec
from ..errors import InvalidInput, InvalidState, NotFound, StorefrontError
from ..policy import Actor, can_access, require
from ..schemas import GuestOrderCreate, OrderItemIn
from ..settings_cache import SettingsCache
from . import accounts, addresses, catalog
from .cart import CartEngine
from .lifecycle import classify, ref_filter
from .sequence import next_order_code

logger = logging.getLogger(__name__)

USER_SUMMARY = {"name": 1, "email": 1, "role": 1}


def merge_items(items: Iterable) -> List[Tuple[str, int]]:
    """Collapse ``{productId, quantity}`` pairs so each product appears once, first-seen order kept."""
    merged: Dict[str, int] = {}
    for item in items:
        if isinstance(item, OrderItemIn):
            pid, qty = item.productId, item.quantity
        else:
            pid, qty = str(item["productId"]), int(item["quantity"])
        if qty < 1:
            raise InvalidInput("Quantity must be >= 1")
        merged[pid] = merged.get(pid, 0) + qty
    return list(merged.items())


class OrderMaterializer:
    def __init__(self, db, settings: SettingsCache):
        self.db = db
        self.settings = settings
        self.carts = CartEngine(db, settings)

    async def resolve_target_user(self, actor: Actor, user_id: Optional[str]) -> ObjectId:
        if not user_id or user_id == actor.id:
            return parse_object_id(actor.id, "userId")
        require(actor, "order", "create_for_other")
        user = await self.db["users"].find_one({"_id": parse_object_id(user_id, "userId"), "isActive": True}, {"_id": 1})
        if not user:
            raise NotFound("User not found")
        return user["_id"]

    async def resolve_items(self, source: List[Tuple[str, int]]) -> Tuple[List[dict], float]:
        products = await catalog.find_active_by_ids(self.db, [pid for pid, _ in source])
        order_items = []
        total = 0
        for pid, quantity in source:
            product = products.get(pid)
            if product is None:
                raise InvalidInput(f"Product not found or inactive: {pid}")
            subtotal = product["price"] * quantity
            total += subtotal
            order_items.append(
                {
                    "product": product["id"],
                    "name": product["name"],
                    "price": product["price"],
                    "quantity": quantity,
                    "subtotal": subtotal,
                }
            )
        return order_items, total

    async def _persist(self, user_id: ObjectId, items: List[dict], total: float, shipping: dict, notes: str) -> dict:
        if not items:
            raise InvalidState("Order must have at least one item")
        currency = await self.settings.get_currency(self.db)
        order = {
            "orderCode": await next_order_code(self.db),
            "user": user_id,
            "items": items,
            "totalAmount": total,
            "currency": currency,
            "status": "pending",
            "shippingAddress": shipping,
            "notes": notes or "",
            "isActive": True,
        }
        await create_document(self.db, "orders", order)
        logger.info("Order %s created for user %s (%s %s)", order["orderCode"], user_id, total, currency)
        return order

    async def _clear_cart(self, user_id: ObjectId, order_code: str) -> None:
        try:
            await self.carts.clear(user_id)
        except (PyMongoError, StorefrontError):
            logger.exception("Order %s committed but clearing the cart of user %s failed", order_code, user_id)

    async def create(self, actor: Actor, address_id: str, items: Optional[List[OrderItemIn]] = None,
                     notes: str = "", user_id: Optional[str] = None) -> dict:
        """Materialize an order from ``items`` or, when omitted, from the target user's cart."""
        target = await self.resolve_target_user(actor, user_id)

        address = await addresses.find_active_for_user(self.db, target, address_id)
        if not address:
            raise NotFound("Address not found")

        from_cart = items is None
        if from_cart:
            cart = await self.carts.get_or_create(target)
            if not cart.get("items"):
                raise InvalidState("No items provided and cart is empty")
            source = merge_items({"productId": i["product"], "quantity": i["quantity"]} for i in cart["items"])
        else:
            source = merge_items(items)

        order_items, total = await self.resolve_items(source)
        order = await self._persist(target, order_items, total, addresses.snapshot(address), notes)
        if from_cart:
            await self._clear_cart(target, order["orderCode"])
        return order

    async def checkout(self, actor: Actor, address_id: Optional[str] = None, notes: str = "",
                       user_id: Optional[str] = None) -> dict:
        """Cart checkout; falls back to the target user's default address."""
        if not address_id:
            target = await self.resolve_target_user(actor, user_id)
            cart = await self.carts.get_or_create(target)
            if not cart.get("items"):
                raise InvalidState("No items provided and cart is empty")
            default = await addresses.find_default_for_user(self.db, target)
            if not default:
                raise InvalidInput(
                    "addressId is required",
                    details=[{"field": "addressId", "message": "No addressId given and no default address on file"}],
                )
            address_id = str(default["_id"])
        return await self.create(actor, address_id, items=None, notes=notes, user_id=user_id)

    async def create_for_guest(self, payload: GuestOrderCreate) -> dict:
        order_items, total = await self.resolve_items(merge_items(payload.items))
        user = await accounts.provision_guest(self.db, payload.guest)
        shipping = payload.shippingAddress.model_dump()
        shipping["country"] = shipping["country"].upper()
        return await self._persist(user["_id"], order_items, total, shipping, payload.notes)


# Read paths

async def attach_users(db, orders: List[dict]) -> List[dict]:
    """Replace each order's ``user`` id with ``{_id, name, email, role}``."""
    user_ids = list({o["user"] for o in orders if isinstance(o.get("user"), ObjectId)})
    if not user_ids:
        return orders
    users = await db["users"].find({"_id": {"$in": user_ids}}, USER_SUMMARY).to_list(length=None)
    by_id = {u["_id"]: u for u in users}
    for order in orders:
        if isinstance(order.get("user"), ObjectId):
            order["user"] = by_id.get(order["user"], {"_id": order["user"]})
    return orders


async def get_order(db, actor: Actor, reference: str, include_inactive: bool = False) -> dict:
    query = ref_filter([classify(reference)])
    if not include_inactive:
        query["isActive"] = True
    order = await db["orders"].find_one(query)
    if not order:
        raise NotFound("Order not found")
    require(actor, "order", "read", order["user"])
    await attach_users(db, [order])
    return order


async def list_orders(
    db,
    actor: Actor,
    status: Optional[str] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    q: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
):
    query = {"isActive": True}
    if not can_access(actor, "order", "list_all"):
        query["user"] = parse_object_id(actor.id)
    if status:
        query["status"] = status
    if min_amount is not None or max_amount is not None:
        query["totalAmount"] = {}
        if min_amount is not None:
            query["totalAmount"]["$gte"] = min_amount
        if max_amount is not None:
            query["totalAmount"]["$lte"] = max_amount
    if start_date or end_date:
        query["createdAt"] = {}
        if start_date:
            query["createdAt"]["$gte"] = start_date
        if end_date:
            query["createdAt"]["$lte"] = end_date
    if q:
        pattern = re.escape(q)
        query["$or"] = [
            {"orderCode": {"$regex": pattern, "$options": "i"}},
            {"shippingAddress.fullName": {"$regex": pattern, "$options": "i"}},
            {"notes": {"$regex": pattern, "$options": "i"}},
        ]

    docs, pagination = await find_page(db, "orders", query, sort_spec(sort_by, sort_order, ("createdAt", -1)), page, limit)
    await attach_users(db, docs)
    return docs, pagination
