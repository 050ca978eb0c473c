from fastapi import APIRouter, Depends
from pymongo.errors import DuplicateKeyError

from ..auth import authorize
from ..database import get_db, get_documents, parse_object_id, serialize_doc, utcnow
from ..errors import Conflict, NotFound
from ..policy import Actor
from ..schemas import WishlistAdd
from ..services.catalog import find_active_by_id

router = APIRouter(prefix="/wishlist", tags=["wishlist"])

wishlist_user = authorize("wishlist", "use")


@router.get("")
async def list_wishlist(actor: Actor = Depends(wishlist_user), db=Depends(get_db)):
    entries = await get_documents(db, "wishlists", {"userId": parse_object_id(actor.id)}, sort=[("createdAt", -1)])
    ids = [entry["productId"] for entry in entries]
    products = await get_documents(db, "products", {"_id": {"$in": ids}, "isActive": True}) if ids else []
    by_id = {p["_id"]: p for p in products}
    data = [serialize_doc(by_id[pid]) for pid in ids if pid in by_id]
    return {"success": True, "count": len(data), "data": data}


@router.post("", status_code=201)
async def add_to_wishlist(payload: WishlistAdd, actor: Actor = Depends(wishlist_user), db=Depends(get_db)):
    product = await find_active_by_id(db, payload.productId)
    if not product:
        raise NotFound("Product not found")
    entry = {"userId": parse_object_id(actor.id), "productId": product["id"]}
    if await db["wishlists"].find_one(entry, {"_id": 1}):
        raise Conflict("Product already in wishlist")
    try:
        await db["wishlists"].insert_one({**entry, "createdAt": utcnow()})
    except DuplicateKeyError:
        raise Conflict("Product already in wishlist")
    return {"success": True, "message": "Product added to wishlist", "data": {"productId": str(product["id"])}}


@router.delete("/{product_id}")
async def remove_from_wishlist(product_id: str, actor: Actor = Depends(wishlist_user), db=Depends(get_db)):
    result = await db["wishlists"].delete_one(
        {"userId": parse_object_id(actor.id), "productId": parse_object_id(product_id, "productId")}
    )
    if result.deleted_count == 0:
        raise NotFound("Product not in wishlist")
    return {"success": True, "message": "Product removed from wishlist"}
