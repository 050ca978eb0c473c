"""Read-only product lookups used by the cart and the order materializer."""

from typing import Dict, Iterable, Optional

from bson import ObjectId

from ..database import is_object_id

PRODUCT_FIELDS = {"name": 1, "price": 1}


async def find_active_by_id(db, product_id) -> Optional[dict]:
    """Return ``{id, name, price}`` for an active product, else None."""
    if not isinstance(product_id, ObjectId):
        if not is_object_id(product_id):
            return None
        product_id = ObjectId(product_id)
    doc = await db["products"].find_one({"_id": product_id, "isActive": True}, PRODUCT_FIELDS)
    if not doc:
        return None
    return {"id": doc["_id"], "name": doc["name"], "price": float(doc["price"])}


async def find_active_by_ids(db, product_ids: Iterable) -> Dict[str, dict]:
    """Batch variant keyed by the product id string; missing or inactive ids are absent."""
    ids = []
    for pid in product_ids:
        if isinstance(pid, ObjectId):
            ids.append(pid)
        elif is_object_id(pid):
            ids.append(ObjectId(pid))
    if not ids:
        return {}
    docs = await db["products"].find({"_id": {"$in": ids}, "isActive": True}, PRODUCT_FIELDS).to_list(length=None)
    return {str(doc["_id"]): {"id": doc["_id"], "name": doc["name"], "price": float(doc["price"])} for doc in docs}
