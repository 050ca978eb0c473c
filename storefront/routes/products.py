import re
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from ..auth import authorize
from ..database import create_document, find_page, get_db, parse_object_id, serialize_doc, sort_spec, utcnow
from ..errors import InvalidInput, NotFound
from ..policy import Actor
from ..schemas import ProductCreate, ProductUpdate

router = APIRouter(prefix="/products", tags=["products"])

catalog_writer = authorize("catalog", "write")


async def _check_category(db, category_id: str):
    category = await db["categories"].find_one({"_id": parse_object_id(category_id, "category"), "isActive": True})
    if not category:
        raise InvalidInput("Invalid category")
    return category["_id"]


@router.get("")
async def list_products(
    search: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = None,
    minPrice: Optional[float] = Query(None, ge=0),
    maxPrice: Optional[float] = Query(None, ge=0),
    sortBy: Optional[Literal["name", "price", "createdAt", "updatedAt"]] = None,
    sortOrder: Optional[Literal["asc", "desc"]] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db=Depends(get_db),
):
    query = {"isActive": True}
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    if category:
        query["category"] = parse_object_id(category, "category")
    if minPrice is not None or maxPrice is not None:
        query["price"] = {}
        if minPrice is not None:
            query["price"]["$gte"] = minPrice
        if maxPrice is not None:
            query["price"]["$lte"] = maxPrice

    docs, pagination = await find_page(db, "products", query, sort_spec(sortBy, sortOrder, ("createdAt", -1)), page, limit)
    pagination["hasNext"] = page < pagination["pages"]
    pagination["hasPrev"] = page > 1
    return {"success": True, "count": len(docs), "pagination": pagination, "data": [serialize_doc(d) for d in docs]}


@router.get("/{product_id}")
async def get_product(product_id: str, db=Depends(get_db)):
    product = await db["products"].find_one({"_id": parse_object_id(product_id), "isActive": True})
    if not product:
        raise NotFound("Product not found")
    return {"success": True, "data": serialize_doc(product)}


@router.post("", status_code=201)
async def create_product(payload: ProductCreate, actor: Actor = Depends(catalog_writer), db=Depends(get_db)):
    doc = payload.model_dump()
    doc["category"] = await _check_category(db, payload.category)
    doc["isActive"] = True
    doc["createdBy"] = parse_object_id(actor.id)
    await create_document(db, "products", doc)
    return {"success": True, "data": serialize_doc(doc)}


@router.put("/{product_id}")
async def update_product(
    product_id: str, payload: ProductUpdate, actor: Actor = Depends(catalog_writer), db=Depends(get_db)
):
    oid = parse_object_id(product_id)
    if not await db["products"].find_one({"_id": oid}, {"_id": 1}):
        raise NotFound("Product not found")
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "category" in updates:
        updates["category"] = await _check_category(db, updates["category"])
    updates["updatedAt"] = utcnow()
    await db["products"].update_one({"_id": oid}, {"$set": updates})
    product = await db["products"].find_one({"_id": oid})
    return {"success": True, "data": serialize_doc(product)}


@router.delete("/{product_id}")
async def delete_product(product_id: str, actor: Actor = Depends(catalog_writer), db=Depends(get_db)):
    result = await db["products"].update_one(
        {"_id": parse_object_id(product_id), "isActive": True},
        {"$set": {"isActive": False, "updatedAt": utcnow()}},
    )
    if result.matched_count == 0:
        raise NotFound("Product not found")
    return {"success": True, "message": "Product deleted successfully"}
