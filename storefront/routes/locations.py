"""Governorates and the cities inside them."""

import re
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pymongo.errors import DuplicateKeyError

from ..auth import authorize
from ..database import create_document, find_page, get_db, get_documents, parse_object_id, serialize_doc, sort_spec, utcnow
from ..errors import Conflict, NotFound
from ..policy import Actor
from ..schemas import CityCreate, CityUpdate, GovernorateCreate, GovernorateUpdate, LocationStatus

governorates = APIRouter(prefix="/governorates", tags=["locations"])
cities = APIRouter(prefix="/cities", tags=["locations"])

location_writer = authorize("location", "write")

LocationSortField = Literal["name", "nameAr", "code", "status", "createdAt", "updatedAt"]


def _list_query(search: Optional[str], status: Optional[str]) -> dict:
    query = {"isActive": True}
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"nameAr": {"$regex": pattern, "$options": "i"}},
            {"code": {"$regex": pattern, "$options": "i"}},
        ]
    if status:
        query["status"] = status
    return query


async def _status_summary(db, collection: str) -> dict:
    rows = await db[collection].aggregate(
        [{"$match": {"isActive": True}}, {"$group": {"_id": "$status", "count": {"$sum": 1}}}]
    ).to_list(length=None)
    summary = {"active": 0, "inactive": 0, "maintenance": 0}
    for row in rows:
        summary[row["_id"]] = row["count"]
    summary["total"] = sum(summary.values())
    return summary


async def _get_active(db, collection: str, item_id: str, label: str) -> dict:
    doc = await db[collection].find_one({"_id": parse_object_id(item_id), "isActive": True})
    if not doc:
        raise NotFound(f"{label} not found")
    return doc


async def _soft_delete(db, collection: str, item_id: str, label: str) -> None:
    result = await db[collection].update_one(
        {"_id": parse_object_id(item_id), "isActive": True},
        {"$set": {"isActive": False, "updatedAt": utcnow()}},
    )
    if result.matched_count == 0:
        raise NotFound(f"{label} not found")


# Governorates

@governorates.get("")
async def list_governorates(
    search: Optional[str] = Query(None, max_length=100),
    status: Optional[LocationStatus] = None,
    sortBy: Optional[LocationSortField] = None,
    sortOrder: Optional[Literal["asc", "desc"]] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db=Depends(get_db),
):
    docs, pagination = await find_page(
        db, "governorates", _list_query(search, status), sort_spec(sortBy, sortOrder, ("name", 1)), page, limit
    )
    return {"success": True, "count": len(docs), "pagination": pagination, "data": [serialize_doc(d) for d in docs]}


@governorates.get("/status-summary")
async def governorate_status_summary(db=Depends(get_db)):
    return {"success": True, "data": await _status_summary(db, "governorates")}


@governorates.get("/{governorate_id}")
async def get_governorate(governorate_id: str, db=Depends(get_db)):
    governorate = await _get_active(db, "governorates", governorate_id, "Governorate")
    city_count = await db["cities"].count_documents({"governorate": governorate["_id"], "isActive": True})
    return {"success": True, "data": {**serialize_doc(governorate), "cityCount": city_count}}


@governorates.post("", status_code=201)
async def create_governorate(payload: GovernorateCreate, actor: Actor = Depends(location_writer), db=Depends(get_db)):
    doc = payload.model_dump()
    doc["code"] = doc["code"].upper()
    doc.update(isActive=True, createdBy=parse_object_id(actor.id))
    if await db["governorates"].find_one({"$or": [{"name": doc["name"]}, {"code": doc["code"]}]}, {"_id": 1}):
        raise Conflict("Governorate with this name or code already exists")
    try:
        await create_document(db, "governorates", doc)
    except DuplicateKeyError:
        raise Conflict("Governorate with this name or code already exists")
    return {"success": True, "data": serialize_doc(doc)}


@governorates.put("/{governorate_id}")
async def update_governorate(
    governorate_id: str, payload: GovernorateUpdate, actor: Actor = Depends(location_writer), db=Depends(get_db)
):
    governorate = await _get_active(db, "governorates", governorate_id, "Governorate")
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "code" in updates:
        updates["code"] = updates["code"].upper()
    clashes = [{k: updates[k]} for k in ("name", "code") if k in updates]
    if clashes and await db["governorates"].find_one({"$or": clashes, "_id": {"$ne": governorate["_id"]}}, {"_id": 1}):
        raise Conflict("Governorate with this name or code already exists")
    updates["updatedAt"] = utcnow()
    await db["governorates"].update_one({"_id": governorate["_id"]}, {"$set": updates})
    governorate.update(updates)
    return {"success": True, "data": serialize_doc(governorate)}


@governorates.delete("/{governorate_id}")
async def delete_governorate(governorate_id: str, actor: Actor = Depends(location_writer), db=Depends(get_db)):
    oid = parse_object_id(governorate_id)
    if await db["cities"].count_documents({"governorate": oid, "isActive": True}):
        raise Conflict("Governorate still has active cities")
    await _soft_delete(db, "governorates", governorate_id, "Governorate")
    return {"success": True, "message": "Governorate deleted successfully"}


# Cities

@cities.get("")
async def list_cities(
    search: Optional[str] = Query(None, max_length=100),
    status: Optional[LocationStatus] = None,
    governorate: Optional[str] = None,
    sortBy: Optional[LocationSortField] = None,
    sortOrder: Optional[Literal["asc", "desc"]] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db=Depends(get_db),
):
    query = _list_query(search, status)
    if governorate:
        query["governorate"] = parse_object_id(governorate, "governorate")
    docs, pagination = await find_page(db, "cities", query, sort_spec(sortBy, sortOrder, ("name", 1)), page, limit)
    return {"success": True, "count": len(docs), "pagination": pagination, "data": [serialize_doc(d) for d in docs]}


@cities.get("/status-summary")
async def city_status_summary(db=Depends(get_db)):
    return {"success": True, "data": await _status_summary(db, "cities")}


@cities.get("/by-governorate/{governorate_id}")
async def cities_by_governorate(governorate_id: str, db=Depends(get_db)):
    governorate = await _get_active(db, "governorates", governorate_id, "Governorate")
    docs = await get_documents(db, "cities", {"governorate": governorate["_id"], "isActive": True}, sort=[("name", 1)])
    return {"success": True, "count": len(docs), "data": [serialize_doc(d) for d in docs]}


@cities.get("/{city_id}")
async def get_city(city_id: str, db=Depends(get_db)):
    city = await _get_active(db, "cities", city_id, "City")
    return {"success": True, "data": serialize_doc(city)}


@cities.post("", status_code=201)
async def create_city(payload: CityCreate, actor: Actor = Depends(location_writer), db=Depends(get_db)):
    governorate = await _get_active(db, "governorates", payload.governorate, "Governorate")
    doc = payload.model_dump()
    doc.update(
        code=doc["code"].upper(),
        governorate=governorate["_id"],
        isActive=True,
        createdBy=parse_object_id(actor.id),
    )
    if await db["cities"].find_one({"name": doc["name"], "governorate": governorate["_id"]}, {"_id": 1}):
        raise Conflict("City already exists in this governorate")
    try:
        await create_document(db, "cities", doc)
    except DuplicateKeyError:
        raise Conflict("City already exists in this governorate")
    return {"success": True, "data": serialize_doc(doc)}


@cities.put("/{city_id}")
async def update_city(city_id: str, payload: CityUpdate, actor: Actor = Depends(location_writer), db=Depends(get_db)):
    city = await _get_active(db, "cities", city_id, "City")
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "governorate" in updates:
        updates["governorate"] = (await _get_active(db, "governorates", updates["governorate"], "Governorate"))["_id"]
    if "code" in updates:
        updates["code"] = updates["code"].upper()
    name = updates.get("name", city["name"])
    parent = updates.get("governorate", city["governorate"])
    if await db["cities"].find_one({"name": name, "governorate": parent, "_id": {"$ne": city["_id"]}}, {"_id": 1}):
        raise Conflict("City already exists in this governorate")
    updates["updatedAt"] = utcnow()
    await db["cities"].update_one({"_id": city["_id"]}, {"$set": updates})
    city.update(updates)
    return {"success": True, "data": serialize_doc(city)}


@cities.delete("/{city_id}")
async def delete_city(city_id: str, actor: Actor = Depends(location_writer), db=Depends(get_db)):
    await _soft_delete(db, "cities", city_id, "City")
    return {"success": True, "message": "City deleted successfully"}
