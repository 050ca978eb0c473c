"""
Order lifecycle

Owners may cancel while an order is ``pending``; elevated roles may set any
status. Bulk operations take a mixed list of ObjectId strings and order codes,
classify each token first, and report the tokens that matched nothing.
"""

import logging
from dataclasses import dataclass
from typing import List, Union

from bson import ObjectId
from pymongo import ReturnDocument

from ..database import is_object_id, utcnow
from ..errors import InvalidInput, InvalidState, NotFound
from ..policy import Actor, require

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("pending", "paid", "shipped", "delivered", "cancelled", "refunded")


@dataclass(frozen=True)
class ById:
    token: str
    oid: ObjectId


@dataclass(frozen=True)
class ByCode:
    token: str


OrderRef = Union[ById, ByCode]


def classify(token: str) -> OrderRef:
    """24-hex strings are storage ids; anything else is treated as an order code."""
    if is_object_id(token):
        return ById(token, ObjectId(token))
    return ByCode(token)


def ref_filter(refs: List[OrderRef]) -> dict:
    ids = [r.oid for r in refs if isinstance(r, ById)]
    codes = [r.token for r in refs if isinstance(r, ByCode)]
    clauses = []
    if ids:
        clauses.append({"_id": {"$in": ids}})
    if codes:
        clauses.append({"orderCode": {"$in": codes}})
    if not clauses:
        raise InvalidInput("No valid order identifiers provided")
    if len(clauses) == 1:
        return clauses[0]
    return {"$or": clauses}


def unmatched(refs: List[OrderRef], found: List[dict]) -> List[str]:
    ids = {o["_id"] for o in found}
    codes = {o["orderCode"] for o in found if o.get("orderCode")}
    return [
        r.token
        for r in refs
        if (isinstance(r, ById) and r.oid not in ids) or (isinstance(r, ByCode) and r.token not in codes)
    ]


def _check_status(status: str) -> None:
    if status not in ORDER_STATUSES:
        raise InvalidInput("Invalid status")


class OrderLifecycle:
    def __init__(self, db):
        self.db = db
        self.orders = db["orders"]

    async def _find_active(self, reference: str) -> dict:
        query = ref_filter([classify(reference)])
        query["isActive"] = True
        order = await self.orders.find_one(query)
        if not order:
            raise NotFound("Order not found")
        return order

    async def cancel(self, actor: Actor, reference: str) -> dict:
        order = await self._find_active(reference)
        require(actor, "order", "cancel", order["user"])
        updated = await self.orders.find_one_and_update(
            {"_id": order["_id"], "status": "pending", "isActive": True},
            {"$set": {"status": "cancelled", "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise InvalidState("Only pending orders can be cancelled")
        logger.info("Order %s cancelled by owner %s", order.get("orderCode"), actor.id)
        return updated

    async def update_status(self, actor: Actor, reference: str, status: str) -> dict:
        require(actor, "order", "update_status")
        _check_status(status)
        query = ref_filter([classify(reference)])
        query["isActive"] = True
        updated = await self.orders.find_one_and_update(
            query,
            {"$set": {"status": status, "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise NotFound("Order not found")
        logger.info("Order %s set to %s by %s", updated.get("orderCode"), status, actor.id)
        return updated

    async def _match(self, tokens: List[str]):
        refs = [classify(t) for t in tokens]
        query = ref_filter(refs)
        query["isActive"] = True
        found = await self.orders.find(query, {"_id": 1, "orderCode": 1, "status": 1}).to_list(length=None)
        if not found:
            raise NotFound("No matching orders found")
        return refs, found

    async def bulk_update_status(self, actor: Actor, tokens: List[str], status: str) -> dict:
        require(actor, "order", "update_status")
        _check_status(status)
        refs, found = await self._match(tokens)
        ids = [o["_id"] for o in found]
        result = await self.orders.update_many(
            {"_id": {"$in": ids}}, {"$set": {"status": status, "updatedAt": utcnow()}}
        )
        updated = await self.orders.find({"_id": {"$in": ids}}).to_list(length=None)
        logger.info("Bulk status %s: %d matched, %d modified", status, len(found), result.modified_count)
        return {
            "matchedCount": len(found),
            "modifiedCount": result.modified_count,
            "notFound": unmatched(refs, found),
            "data": updated,
        }

    async def bulk_soft_delete(self, actor: Actor, tokens: List[str]) -> dict:
        require(actor, "order", "delete")
        refs, found = await self._match(tokens)
        ids = [o["_id"] for o in found]
        result = await self.orders.update_many(
            {"_id": {"$in": ids}}, {"$set": {"isActive": False, "updatedAt": utcnow()}}
        )
        logger.info("Bulk delete: %d matched, %d modified", len(found), result.modified_count)
        return {
            "matchedCount": len(found),
            "modifiedCount": result.modified_count,
            "notFound": unmatched(refs, found),
            "data": [{"_id": o["_id"], "orderCode": o.get("orderCode")} for o in found],
        }
