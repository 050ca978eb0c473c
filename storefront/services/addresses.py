"""Per-user shipping addresses; at most one active default per user."""

from typing import List, Optional, Tuple

from pymongo import DESCENDING

from ..database import create_document, is_object_id, parse_object_id, utcnow
from ..errors import InvalidInput, NotFound
from ..schemas import AddressCreate, AddressUpdate

SNAPSHOT_FIELDS = ("fullName", "phone", "line1", "line2", "city", "governorate", "postalCode", "country")


def snapshot(address: dict) -> dict:
    """Copy of the shipping-contact fields, stored verbatim on an order."""
    return {field: address.get(field, "") or "" for field in SNAPSHOT_FIELDS}


async def find_active_for_user(db, user_id, address_id) -> Optional[dict]:
    if not is_object_id(str(address_id)):
        return None
    return await db["addresses"].find_one(
        {"_id": parse_object_id(str(address_id)), "user": parse_object_id(str(user_id)), "isActive": True}
    )


async def find_default_for_user(db, user_id) -> Optional[dict]:
    return await db["addresses"].find_one({"user": parse_object_id(str(user_id)), "isActive": True, "isDefault": True})


async def list_for_user(db, user_id) -> List[dict]:
    cursor = db["addresses"].find({"user": parse_object_id(user_id), "isActive": True})
    cursor = cursor.sort([("isDefault", DESCENDING), ("updatedAt", DESCENDING)])
    return await cursor.to_list(length=None)


async def get_for_user(db, user_id, address_id) -> dict:
    parse_object_id(address_id, "addressId")
    address = await find_active_for_user(db, user_id, address_id)
    if not address:
        raise NotFound("Address not found")
    return address


async def _resolve_location(db, governorate_id: Optional[str], city_id: Optional[str]) -> Tuple[Optional[dict], Optional[dict]]:
    governorate = city = None
    if governorate_id:
        governorate = await db["governorates"].find_one({"_id": parse_object_id(governorate_id, "governorateId"), "isActive": True})
        if not governorate:
            raise NotFound("Governorate not found")
    if city_id:
        city = await db["cities"].find_one({"_id": parse_object_id(city_id, "cityId"), "isActive": True})
        if not city:
            raise NotFound("City not found")
    if governorate and city and city.get("governorate") and str(city["governorate"]) != str(governorate["_id"]):
        raise InvalidInput("City does not belong to the specified governorate")
    return governorate, city


async def _unset_other_defaults(db, user_id, address_id) -> None:
    await db["addresses"].update_many(
        {"user": parse_object_id(user_id), "_id": {"$ne": address_id}, "isDefault": True},
        {"$set": {"isDefault": False, "updatedAt": utcnow()}},
    )


async def create(db, user_id, account_name: str, payload: AddressCreate) -> dict:
    governorate, city = await _resolve_location(db, payload.governorateId, payload.cityId)
    full_name = account_name or payload.fullName
    if not full_name:
        raise InvalidInput("fullName is required")

    doc = payload.model_dump(exclude={"cityId", "governorateId"})
    doc.update(
        user=parse_object_id(user_id),
        fullName=full_name,
        city=city["name"],
        governorate=governorate["name"],
        country=payload.country.upper(),
        isActive=True,
    )
    await create_document(db, "addresses", doc)
    if doc["isDefault"]:
        await _unset_other_defaults(db, user_id, doc["_id"])
    return doc


async def update(db, user_id, account_name: str, address_id, payload: AddressUpdate) -> dict:
    address = await get_for_user(db, user_id, address_id)
    updates = payload.model_dump(exclude_unset=True, exclude={"cityId", "governorateId"})
    if account_name:
        updates["fullName"] = account_name
    if payload.cityId or payload.governorateId:
        governorate, city = await _resolve_location(db, payload.governorateId, payload.cityId)
        if city:
            updates["city"] = city["name"]
        if governorate:
            updates["governorate"] = governorate["name"]
    if updates.get("country"):
        updates["country"] = updates["country"].upper()
    updates["updatedAt"] = utcnow()

    await db["addresses"].update_one({"_id": address["_id"]}, {"$set": updates})
    address.update(updates)
    if address.get("isDefault"):
        await _unset_other_defaults(db, user_id, address["_id"])
    return address


async def soft_delete(db, user_id, address_id) -> None:
    address = await get_for_user(db, user_id, address_id)
    await db["addresses"].update_one(
        {"_id": address["_id"]}, {"$set": {"isActive": False, "isDefault": False, "updatedAt": utcnow()}}
    )


async def set_default(db, user_id, address_id) -> dict:
    address = await get_for_user(db, user_id, address_id)
    now = utcnow()
    await db["addresses"].update_one({"_id": address["_id"]}, {"$set": {"isDefault": True, "updatedAt": now}})
    await _unset_other_defaults(db, user_id, address["_id"])
    address.update(isDefault=True, updatedAt=now)
    return address
