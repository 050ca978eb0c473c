import re
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pymongo.errors import DuplicateKeyError

from ..auth import authorize
from ..database import create_document, find_page, get_db, parse_object_id, serialize_doc, sort_spec, utcnow
from ..errors import Conflict, NotFound
from ..policy import Actor
from ..schemas import CategoryCreate, CategoryUpdate

router = APIRouter(prefix="/categories", tags=["categories"])

catalog_writer = authorize("catalog", "write")


async def _ensure_unique_name(db, name: str, exclude=None):
    query = {"name": {"$regex": f"^{re.escape(name)}$", "$options": "i"}}
    if exclude is not None:
        query["_id"] = {"$ne": exclude}
    if await db["categories"].find_one(query, {"_id": 1}):
        raise Conflict("Category with this name already exists")


@router.get("")
async def list_categories(
    search: Optional[str] = Query(None, max_length=100),
    sortBy: Optional[Literal["name", "createdAt", "updatedAt"]] = None,
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
    docs, pagination = await find_page(db, "categories", query, sort_spec(sortBy, sortOrder, ("name", 1)), page, limit)
    return {"success": True, "count": len(docs), "pagination": pagination, "data": [serialize_doc(d) for d in docs]}


@router.get("/{category_id}")
async def get_category(category_id: str, db=Depends(get_db)):
    category = await db["categories"].find_one({"_id": parse_object_id(category_id), "isActive": True})
    if not category:
        raise NotFound("Category not found")
    return {"success": True, "data": serialize_doc(category)}


@router.post("", status_code=201)
async def create_category(payload: CategoryCreate, actor: Actor = Depends(catalog_writer), db=Depends(get_db)):
    await _ensure_unique_name(db, payload.name)
    doc = payload.model_dump()
    doc.update(isActive=True, createdBy=parse_object_id(actor.id))
    try:
        await create_document(db, "categories", doc)
    except DuplicateKeyError:
        raise Conflict("Category with this name already exists")
    return {"success": True, "data": serialize_doc(doc)}


@router.put("/{category_id}")
async def update_category(
    category_id: str, payload: CategoryUpdate, actor: Actor = Depends(catalog_writer), db=Depends(get_db)
):
    oid = parse_object_id(category_id)
    if not await db["categories"].find_one({"_id": oid}, {"_id": 1}):
        raise NotFound("Category not found")
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in updates:
        await _ensure_unique_name(db, updates["name"], exclude=oid)
    updates["updatedAt"] = utcnow()
    await db["categories"].update_one({"_id": oid}, {"$set": updates})
    return {"success": True, "data": serialize_doc(await db["categories"].find_one({"_id": oid}))}


@router.delete("/{category_id}")
async def delete_category(category_id: str, actor: Actor = Depends(catalog_writer), db=Depends(get_db)):
    result = await db["categories"].update_one(
        {"_id": parse_object_id(category_id), "isActive": True},
        {"$set": {"isActive": False, "updatedAt": utcnow()}},
    )
    if result.matched_count == 0:
        raise NotFound("Category not found")
    return {"success": True, "message": "Category deleted successfully"}
