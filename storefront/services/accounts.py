import logging
import re
from typing import Optional

from pymongo.errors import DuplicateKeyError

from ..database import create_document, find_page, parse_object_id, utcnow
from ..errors import Conflict, InvalidState, NotFound, Unauthenticated
from ..schemas import GuestInfo, RegisterRequest, UserUpdate
from ..security import hash_password, unusable_password, verify_password

logger = logging.getLogger(__name__)

PUBLIC_USER = {"password": 0}


def public_user(user: dict) -> dict:
    return {k: v for k, v in user.items() if k != "password"}


def _new_user(name: str, email: str, password_hash: str, role: str) -> dict:
    return {
        "name": name,
        "email": email.lower(),
        "password": password_hash,
        "role": role,
        "status": "active",
        "isActive": True,
        "avatar": "",
    }


async def register(db, payload: RegisterRequest) -> dict:
    email = payload.email.lower()
    if await db["users"].find_one({"email": email}):
        raise Conflict("User already exists")
    user = _new_user(payload.name, email, hash_password(payload.password), "user")
    try:
        await create_document(db, "users", user)
    except DuplicateKeyError:
        raise Conflict("User already exists")
    logger.info("Registered user %s", user["_id"])
    return public_user(user)


async def authenticate(db, email: str, password: str) -> dict:
    user = await db["users"].find_one({"email": email.lower()})
    if not user:
        raise Unauthenticated("Invalid credentials")
    if not user.get("isActive", True):
        raise Unauthenticated("Account is deactivated")
    if not verify_password(password, user.get("password", "")):
        raise Unauthenticated("Invalid credentials")
    return public_user(user)


async def get_active_user(db, user_id) -> dict:
    user = await db["users"].find_one({"_id": parse_object_id(str(user_id))}, PUBLIC_USER)
    if not user:
        raise NotFound("User not found")
    if not user.get("isActive", True):
        raise Unauthenticated("Account is deactivated")
    return user


async def provision_guest(db, guest: GuestInfo) -> dict:
    """Reuse the account registered under the guest's email, or create a customer."""
    email = guest.email.lower()
    existing = await db["users"].find_one({"email": email}, PUBLIC_USER)
    if existing:
        return existing
    user = _new_user(guest.name, email, unusable_password(), "customer")
    try:
        await create_document(db, "users", user)
    except DuplicateKeyError:
        # created concurrently by another guest checkout
        return await db["users"].find_one({"email": email}, PUBLIC_USER)
    logger.info("Provisioned customer account %s for guest checkout", user["_id"])
    return public_user(user)


# Administration

async def list_users(db, search: Optional[str], role: Optional[str], is_active: Optional[bool], page: int, limit: int):
    query = {}
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}},
        ]
    if role:
        query["role"] = role
    if is_active is not None:
        query["isActive"] = is_active
    docs, pagination = await find_page(db, "users", query, [("createdAt", -1)], page, limit)
    return [public_user(d) for d in docs], pagination


async def get_user(db, user_id) -> dict:
    user = await db["users"].find_one({"_id": parse_object_id(user_id)}, PUBLIC_USER)
    if not user:
        raise NotFound("User not found")
    return user


async def update_user(db, user_id, payload: UserUpdate) -> dict:
    user = await get_user(db, user_id)
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in updates:
        updates["email"] = updates["email"].lower()
        if updates["email"] != user.get("email") and await db["users"].find_one({"email": updates["email"]}):
            raise Conflict("Email already exists")
    updates["updatedAt"] = utcnow()
    await db["users"].update_one({"_id": user["_id"]}, {"$set": updates})
    user.update(updates)
    return user


async def deactivate_user(db, actor_id: str, user_id) -> None:
    if actor_id == user_id:
        raise InvalidState("Cannot delete your own account")
    user = await get_user(db, user_id)
    await db["users"].update_one({"_id": user["_id"]}, {"$set": {"isActive": False, "updatedAt": utcnow()}})
    logger.info("User %s deactivated by %s", user_id, actor_id)
